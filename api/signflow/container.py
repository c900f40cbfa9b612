from typing import Callable, Optional

from .config import COMPLETION_QUEUE_ENABLED, DEFAULT_EXPIRATION_DAYS
from .db import engine as default_engine, init_db
from .email import EmailNotifier
from .events import SqlEventLog
from .notifications import NotificationDispatcher, Notifier
from .schemas import SigningSession
from .store import SqlSessionStore
from .tokens import TokenCodec
from .workflow import WorkflowEngine, signed_document_url


def build_workflow(
    engine=None,
    notifier: Optional[Notifier] = None,
    handoff: Optional[Callable[[SigningSession], str]] = None,
    tokens: Optional[TokenCodec] = None,
    **kwargs,
) -> WorkflowEngine:
    """Wire a workflow engine against the configured database."""
    bind = engine or default_engine
    init_db(bind)
    tokens = tokens or TokenCodec()
    if handoff is None:
        if COMPLETION_QUEUE_ENABLED:
            from .tasks import queue_completion
            handoff = queue_completion
        else:
            handoff = signed_document_url
    kwargs.setdefault("default_expiration_days", DEFAULT_EXPIRATION_DAYS)
    return WorkflowEngine(
        store=SqlSessionStore(bind),
        events=SqlEventLog(bind),
        dispatcher=NotificationDispatcher(notifier or EmailNotifier(), tokens.signing_link),
        tokens=tokens,
        handoff=handoff,
        **kwargs,
    )

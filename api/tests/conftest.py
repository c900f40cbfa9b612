import os
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, create_engine

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ADMIN_ACCESS_TOKEN", "admin-test-token")
os.environ.setdefault("SECRET_KEY", "test-secret")

from signflow.main import app  # noqa: E402
from signflow.container import build_workflow  # noqa: E402
from signflow.events import MemoryEventLog  # noqa: E402
from signflow.notifications import NotificationDispatcher  # noqa: E402
from signflow.schemas import FieldCreate, FieldValue, SessionCreate, SignerCreate  # noqa: E402
from signflow.store import MemorySessionStore  # noqa: E402
from signflow.tokens import TokenCodec  # noqa: E402
from signflow.workflow import WorkflowEngine  # noqa: E402

ADMIN_HEADERS = {"X-Access-Token": os.environ["ADMIN_ACCESS_TOKEN"]}
ALICE = "alice@example.com"
BOB = "bob@example.com"


class RecordingNotifier:
    def __init__(self):
        self.sent = []
        self.fail_for = set()

    def send(self, recipient, subject, body):
        if recipient in self.fail_for:
            raise RuntimeError(f"mailbox unavailable: {recipient}")
        self.sent.append({"to": recipient, "subject": subject, "body": body})

    def to(self, recipient, subject_prefix=""):
        return [m for m in self.sent if m["to"] == recipient and m["subject"].startswith(subject_prefix)]


class FakeClock:
    def __init__(self, now=None):
        self.now = now or datetime(2026, 1, 5, 9, 30, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def session_payload(signers=(ALICE, BOB), fields=None, **options):
    if fields is None:
        fields = [FieldCreate(kind="signature", label=f"{email} signature", signer_email=email) for email in signers]
    return SessionCreate(
        document_name="Purchase Agreement.pdf",
        document_url="https://files.example.com/docs/purchase-agreement.pdf",
        signers=[SignerCreate(email=email, name=email.split("@")[0].title()) for email in signers],
        fields=fields,
        **options,
    )


def signature_values(workflow, session_id, email, value="Signed"):
    session = workflow.get_session(session_id)
    return [FieldValue(field_id=f.id, value=value) for f in session.fields_for(email)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def tokens():
    return TokenCodec("test-secret", "https://sign.example.com")


@pytest.fixture
def workflow(clock, notifier, tokens):
    return WorkflowEngine(
        store=MemorySessionStore(),
        events=MemoryEventLog(),
        dispatcher=NotificationDispatcher(notifier, tokens.signing_link, sign_off="Signing Desk"),
        tokens=tokens,
        clock=clock,
    )


@pytest.fixture
def test_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def sql_workflow(test_engine, clock, notifier, tokens):
    return build_workflow(engine=test_engine, notifier=notifier, tokens=tokens, clock=clock)


@pytest.fixture
def client(sql_workflow):
    app.state.workflow = sql_workflow
    with TestClient(app) as test_client:
        yield test_client
    app.state.workflow = None

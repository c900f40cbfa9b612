import logging

from celery import Celery

from .config import REDIS_URL, SWEEP_INTERVAL_SECONDS, WORKER_QUEUE
from .schemas import SigningSession
from .workflow import signed_document_url

logger = logging.getLogger(__name__)

cel = Celery("signflow", broker=REDIS_URL, backend=REDIS_URL)
cel.conf.beat_schedule = {
    "sweep-expired-sessions": {
        "task": "sweep_expired_sessions",
        "schedule": SWEEP_INTERVAL_SECONDS,
        "options": {"queue": WORKER_QUEUE},
    },
}

@cel.task(name="sweep_expired_sessions", queue=WORKER_QUEUE)
def sweep_expired_sessions():
    from .container import build_workflow
    expired = build_workflow().sweep_expired()
    return {"expired": expired}

def queue_completion(session: SigningSession) -> str:
    """Hand a completed session to the sealing worker; returns where the result will live."""
    artifact_ref = signed_document_url(session)
    cel.send_task(
        "seal_session",
        args=[session.id],
        kwargs={"document_url": session.document_url, "artifact_ref": artifact_ref},
        queue=WORKER_QUEUE,
    )
    logger.info("Queued session %s for sealing on %s", session.id, WORKER_QUEUE)
    return artifact_ref

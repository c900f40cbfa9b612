from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from . import fields
from .config import BASE_URL, DEFAULT_EXPIRATION_DAYS
from .errors import (
    AlreadySignedError,
    ConflictError,
    ExpiredError,
    IncompleteFieldsError,
    NotFoundError,
    SigningError,
    TerminalStateError,
    ValidationError,
)
from .events import EventLog
from .notifications import NotificationDispatcher
from .schemas import (
    EventType,
    FieldValue,
    SessionCreate,
    SessionStatus,
    SignatureField,
    Signer,
    SignerStatus,
    SigningEvent,
    SigningResult,
    SigningSession,
)
from .store import SessionStore
from .tokens import TokenCodec
from .utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_EMAIL_MESSAGE = "Please review and sign the attached document."


def new_session_id() -> str:
    return f"sign_{uuid.uuid4().hex}"


def new_document_id() -> str:
    return f"doc_{uuid.uuid4().hex[:12]}"


def new_field_id(index: int) -> str:
    return f"field_{index}_{uuid.uuid4().hex[:8]}"


def signed_document_url(session: SigningSession) -> str:
    return f"{BASE_URL}/signed-documents/{session.id}.pdf"


class WorkflowEngine:
    """Drives signing sessions through their lifecycle.

    Every state change for a session happens while holding that session's
    lock from the store, and is persisted and logged before any notice goes
    out. Public operations never raise the ``SigningError`` family; they
    return a ``SigningResult`` describing the outcome instead.
    """

    def __init__(
        self,
        store: SessionStore,
        events: EventLog,
        dispatcher: NotificationDispatcher,
        tokens: TokenCodec,
        clock: Callable[[], datetime] = utcnow,
        session_ids: Callable[[], str] = new_session_id,
        field_ids: Callable[[int], str] = new_field_id,
        document_ids: Callable[[], str] = new_document_id,
        handoff: Callable[[SigningSession], str] = signed_document_url,
        default_expiration_days: int = DEFAULT_EXPIRATION_DAYS,
    ) -> None:
        self.store = store
        self.events = events
        self.dispatcher = dispatcher
        self.tokens = tokens
        self.clock = clock
        self.session_ids = session_ids
        self.field_ids = field_ids
        self.document_ids = document_ids
        self.handoff = handoff
        self.default_expiration_days = default_expiration_days

    # Queries -------------------------------------------------------------
    def get_session(self, session_id: str) -> Optional[SigningSession]:
        return self.store.get(session_id)

    def list_sessions(self, status: Optional[SessionStatus] = None) -> List[SigningSession]:
        return self.store.list(status)

    def events_for(self, session_id: str) -> List[SigningEvent]:
        return self.events.by_session(session_id)

    def verify_events(self, session_id: str) -> bool:
        return self.events.verify(session_id)

    def validate_access(self, session_id: str, signer_email: str, token: Optional[str]) -> bool:
        return self.tokens.validate(session_id, signer_email, token)

    def signing_link(self, session_id: str, signer_email: str) -> str:
        return self.tokens.signing_link(session_id, signer_email)

    # Lifecycle -----------------------------------------------------------
    def create_session(self, payload: SessionCreate) -> SigningResult:
        try:
            session = self._build_session(payload)
            self.store.add(session)
        except SigningError as exc:
            return self._failure(exc)
        logger.info(
            "Created signing session %s for %s with %d signer(s)",
            session.id, session.document_name, len(session.signers),
        )

        report = self.dispatcher.notify_invitations(session)
        for email in report.delivered:
            self._log(session.id, email, EventType.SENT)
        return SigningResult.success("Signing session created", session)

    def record_view(self, session_id: str, signer_email: str, ip: str = "", user_agent: str = "") -> SigningResult:
        session = self.store.get(session_id)
        if not session:
            return self._failure(NotFoundError("Session not found"), session_id)
        if not session.signer(signer_email):
            return self._failure(NotFoundError("Signer not found"), session_id)
        self._log(session_id, signer_email, EventType.OPENED, ip, user_agent)
        return SigningResult.success("Document view recorded", session)

    def submit_signature(
        self,
        session_id: str,
        signer_email: str,
        values: Iterable[FieldValue],
        ip: str = "",
        user_agent: str = "",
    ) -> SigningResult:
        values = list(values)
        try:
            with self.store.lock(session_id):
                session = self._open_session(session_id, ip, user_agent)
                signer = self._pending_signer(session, signer_email)

                absent = fields.missing(
                    fields.required_fields_for(session, signer_email),
                    fields.provided_field_ids(values),
                )
                if absent:
                    raise IncompleteFieldsError(absent)
                fields.apply(session, values, signer_email)

                now = self.clock()
                signer.status = SignerStatus.SIGNED
                signer.signed_at = now
                signer.ip_address = ip
                completed = session.all_signed()
                if completed:
                    session.status = SessionStatus.COMPLETED
                    session.completed_at = now
                else:
                    session.status = SessionStatus.IN_PROGRESS
                self.store.save(session)
                self._log(session_id, signer_email, EventType.SIGNED, ip, user_agent)
        except SigningError as exc:
            return self._failure(exc, session_id)

        logger.info("Signer %s signed session %s", signer_email, session_id)
        if completed:
            self._complete(session)
        return SigningResult.success("Document signed successfully", session)

    def decline(
        self,
        session_id: str,
        signer_email: str,
        reason: str = "",
        ip: str = "",
        user_agent: str = "",
    ) -> SigningResult:
        try:
            with self.store.lock(session_id):
                session = self._open_session(session_id, ip, user_agent)
                signer = self._pending_signer(session, signer_email)
                signer.status = SignerStatus.DECLINED
                session.status = SessionStatus.DECLINED
                self.store.save(session)
                self._log(session_id, signer_email, EventType.DECLINED, ip, user_agent)
        except SigningError as exc:
            return self._failure(exc, session_id)

        logger.info("Signer %s declined session %s", signer_email, session_id)
        self.dispatcher.notify_decline(session, signer_email, reason)
        return SigningResult.success("Document declined", session)

    def extend_expiration(self, session_id: str, additional_days: int) -> bool:
        if additional_days < 0:
            return False
        with self.store.lock(session_id):
            session = self.store.get(session_id)
            if not session or session.is_terminal:
                return False
            if additional_days == 0:
                return True
            try:
                session.expires_at = session.expires_at + timedelta(days=additional_days)
            except OverflowError:
                logger.warning("Refusing to extend session %s by %d days", session_id, additional_days)
                return False
            try:
                self.store.save(session)
            except ConflictError as exc:
                logger.warning("Could not extend session %s: %s", session_id, exc.message)
                return False
        logger.info("Extended session %s to %s", session_id, session.expires_at.isoformat())
        return True

    def cancel(self, session_id: str) -> bool:
        with self.store.lock(session_id):
            session = self.store.get(session_id)
            if not session:
                return False
            if session.status == SessionStatus.EXPIRED:
                return True
            if session.is_terminal:
                return False
            try:
                self._expire(session)
            except ConflictError as exc:
                logger.warning("Could not cancel session %s: %s", session_id, exc.message)
                return False
        logger.info("Cancelled session %s", session_id)
        return True

    def sweep_expired(self) -> List[str]:
        """Expire every non-terminal session whose deadline has passed."""
        expired = []
        now = self.clock()
        for candidate in self.store.list():
            if candidate.is_terminal or now <= candidate.expires_at:
                continue
            with self.store.lock(candidate.id):
                session = self.store.get(candidate.id)
                if not session or session.is_terminal or self.clock() <= session.expires_at:
                    continue
                try:
                    self._expire(session)
                except ConflictError as exc:
                    logger.warning("Skipping session %s during sweep: %s", session.id, exc.message)
                    continue
            expired.append(session.id)
        if expired:
            logger.info("Expired %d overdue session(s)", len(expired))
        return expired

    # Internals -----------------------------------------------------------
    def _build_session(self, payload: SessionCreate) -> SigningSession:
        if not payload.signers:
            raise ValidationError("At least one signer is required")
        emails = [s.email for s in payload.signers]
        if any(not e or not e.strip() for e in emails):
            raise ValidationError("Signer email is required")
        if len(set(emails)) != len(emails):
            raise ValidationError("Signer emails must be unique within a session")
        for f in payload.fields:
            if f.signer_email not in emails:
                raise ValidationError(f"Field '{f.label}' references unknown signer {f.signer_email}")

        days = payload.expiration_days
        if days is None:
            days = self.default_expiration_days
        if days < 1:
            raise ValidationError("expiration_days must be at least 1")

        now = self.clock()
        try:
            expires_at = now + timedelta(days=days)
        except OverflowError:
            raise ValidationError("expiration_days is out of range") from None
        return SigningSession(
            id=self.session_ids(),
            document_id=payload.document_id or self.document_ids(),
            document_name=payload.document_name,
            document_url=payload.document_url,
            status=SessionStatus.PENDING,
            signers=[Signer(email=s.email, name=s.name, role=s.role) for s in payload.signers],
            fields=[
                SignatureField(id=self.field_ids(idx), **f.model_dump())
                for idx, f in enumerate(payload.fields)
            ],
            created_at=now,
            expires_at=expires_at,
            email_subject=payload.email_subject or f"Please sign: {payload.document_name}",
            email_message=payload.email_message or DEFAULT_EMAIL_MESSAGE,
        )

    def _open_session(self, session_id: str, ip: str, user_agent: str) -> SigningSession:
        # caller holds the session lock
        session = self.store.get(session_id)
        if not session:
            raise NotFoundError("Session not found")
        if session.is_terminal:
            raise TerminalStateError(f"Document already {session.status.value}")
        if self.clock() > session.expires_at:
            self._expire(session, ip, user_agent)
            raise ExpiredError("Signing session has expired")
        return session

    def _pending_signer(self, session: SigningSession, signer_email: str) -> Signer:
        signer = session.signer(signer_email)
        if not signer:
            raise NotFoundError("Signer not found")
        if signer.status == SignerStatus.SIGNED:
            raise AlreadySignedError("Document already signed by this signer")
        return signer

    def _expire(self, session: SigningSession, ip: str = "", user_agent: str = "") -> None:
        session.status = SessionStatus.EXPIRED
        self.store.save(session)
        self._log(session.id, "", EventType.EXPIRED, ip, user_agent)
        logger.info("Session %s expired", session.id)

    def _complete(self, session: SigningSession) -> None:
        try:
            artifact_ref = self.handoff(session)
        except Exception:
            logger.exception("Completion hand-off failed for session %s", session.id)
            artifact_ref = signed_document_url(session)
        logger.info("Session %s completed", session.id)
        self.dispatcher.notify_completion(session, artifact_ref)

    def _log(self, session_id: str, signer_email: str, event_type: EventType, ip: str = "", user_agent: str = "") -> None:
        self.events.append(SigningEvent(
            session_id=session_id,
            signer_email=signer_email,
            event_type=event_type,
            timestamp=self.clock(),
            ip_address=ip or "",
            user_agent=user_agent or "",
        ))

    def _failure(self, exc: SigningError, session_id: Optional[str] = None) -> SigningResult:
        logger.info("Rejected request for session %s: %s", session_id, exc.message)
        result = SigningResult.failure(exc)
        result.session_id = session_id
        if isinstance(exc, ExpiredError):
            result.status = SessionStatus.EXPIRED
        return result

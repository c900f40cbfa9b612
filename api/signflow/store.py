import threading
from contextlib import contextmanager
from typing import Dict, List, Optional, Protocol

from sqlalchemy import update
from sqlmodel import Session, select

from .errors import ConflictError
from .models import SignatureFieldRecord, SignerRecord, SigningSessionRecord
from .utils import as_utc
from .schemas import (
    FieldKind,
    SessionStatus,
    SignatureField,
    Signer,
    SignerStatus,
    SigningSession,
)


class LockRegistry:
    """Hands out one lock per session id.

    An entry lives only while someone holds or waits on it, so ids that are
    never used again do not accumulate.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, list] = {}  # id -> [lock, holders]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, session_id: str):
        with self._guard:
            entry = self._locks.setdefault(session_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[session_id]


class SessionStore(Protocol):
    def add(self, session: SigningSession) -> None: ...
    def get(self, session_id: str) -> Optional[SigningSession]: ...
    def save(self, session: SigningSession) -> None: ...
    def list(self, status: Optional[SessionStatus] = None) -> List[SigningSession]: ...
    def lock(self, session_id: str): ...


class MemorySessionStore:
    """Process-local store. Every read and write goes through a deep copy."""

    def __init__(self):
        self._sessions: Dict[str, SigningSession] = {}
        self._guard = threading.Lock()
        self._locks = LockRegistry()

    def lock(self, session_id: str):
        return self._locks.hold(session_id)

    def add(self, session: SigningSession) -> None:
        with self._guard:
            if session.id in self._sessions:
                raise ConflictError(f"session {session.id} already exists")
            self._sessions[session.id] = session.model_copy(deep=True)

    def get(self, session_id: str) -> Optional[SigningSession]:
        with self._guard:
            current = self._sessions.get(session_id)
            return current.model_copy(deep=True) if current else None

    def save(self, session: SigningSession) -> None:
        with self._guard:
            current = self._sessions.get(session.id)
            if current is None or current.version != session.version:
                raise ConflictError(f"session {session.id} was modified concurrently")
            session.version += 1
            self._sessions[session.id] = session.model_copy(deep=True)

    def list(self, status: Optional[SessionStatus] = None) -> List[SigningSession]:
        with self._guard:
            return [
                s.model_copy(deep=True)
                for s in self._sessions.values()
                if status is None or s.status == status
            ]


class SqlSessionStore:
    """SQLModel-backed store.

    Writes compare-and-swap on ``version`` so writers in separate processes
    cannot overwrite each other; the in-process lock registry serializes
    writers within one process.
    """

    def __init__(self, engine):
        self.engine = engine
        self._locks = LockRegistry()

    def lock(self, session_id: str):
        return self._locks.hold(session_id)

    def add(self, session: SigningSession) -> None:
        with Session(self.engine) as db:
            if db.get(SigningSessionRecord, session.id):
                raise ConflictError(f"session {session.id} already exists")
            db.add(SigningSessionRecord(
                id=session.id,
                document_id=session.document_id,
                document_name=session.document_name,
                document_url=session.document_url,
                status=session.status.value,
                email_subject=session.email_subject,
                email_message=session.email_message,
                created_at=session.created_at,
                expires_at=session.expires_at,
                completed_at=session.completed_at,
                version=session.version,
            ))
            for idx, s in enumerate(session.signers):
                db.add(SignerRecord(
                    session_id=session.id,
                    position=idx,
                    email=s.email,
                    name=s.name,
                    role=s.role,
                    status=s.status.value,
                    signed_at=s.signed_at,
                    ip_address=s.ip_address,
                ))
            for idx, f in enumerate(session.fields):
                db.add(SignatureFieldRecord(
                    session_id=session.id,
                    field_id=f.id,
                    position=idx,
                    kind=f.kind.value,
                    label=f.label,
                    required=f.required,
                    page=f.page,
                    x=f.x,
                    y=f.y,
                    width=f.width,
                    height=f.height,
                    signer_email=f.signer_email,
                    value=f.value,
                    signature_image=f.signature_image,
                ))
            db.commit()

    def get(self, session_id: str) -> Optional[SigningSession]:
        with Session(self.engine) as db:
            record = db.get(SigningSessionRecord, session_id)
            if not record:
                return None
            return self._load(db, record)

    def list(self, status: Optional[SessionStatus] = None) -> List[SigningSession]:
        with Session(self.engine) as db:
            query = select(SigningSessionRecord).order_by(SigningSessionRecord.created_at)
            if status is not None:
                query = query.where(SigningSessionRecord.status == status.value)
            return [self._load(db, r) for r in db.exec(query).all()]

    def save(self, session: SigningSession) -> None:
        with Session(self.engine) as db:
            result = db.exec(
                update(SigningSessionRecord)
                .where(
                    SigningSessionRecord.id == session.id,
                    SigningSessionRecord.version == session.version,
                )
                .values(
                    status=session.status.value,
                    expires_at=session.expires_at,
                    completed_at=session.completed_at,
                    version=session.version + 1,
                )
            )
            if result.rowcount != 1:
                db.rollback()
                raise ConflictError(f"session {session.id} was modified concurrently")

            signers = {
                r.email: r
                for r in db.exec(select(SignerRecord).where(SignerRecord.session_id == session.id)).all()
            }
            for s in session.signers:
                row = signers.get(s.email)
                if row is None:
                    continue
                row.status = s.status.value
                row.signed_at = s.signed_at
                row.ip_address = s.ip_address
                db.add(row)

            fields = {
                r.field_id: r
                for r in db.exec(
                    select(SignatureFieldRecord).where(SignatureFieldRecord.session_id == session.id)
                ).all()
            }
            for f in session.fields:
                row = fields.get(f.id)
                if row is None:
                    continue
                row.value = f.value
                row.signature_image = f.signature_image
                db.add(row)
            db.commit()
        session.version += 1

    def _load(self, db: Session, record: SigningSessionRecord) -> SigningSession:
        signers = db.exec(
            select(SignerRecord).where(SignerRecord.session_id == record.id).order_by(SignerRecord.position)
        ).all()
        fields = db.exec(
            select(SignatureFieldRecord)
            .where(SignatureFieldRecord.session_id == record.id)
            .order_by(SignatureFieldRecord.position)
        ).all()
        return SigningSession(
            id=record.id,
            document_id=record.document_id,
            document_name=record.document_name,
            document_url=record.document_url,
            status=SessionStatus(record.status),
            signers=[
                Signer(
                    email=s.email,
                    name=s.name,
                    role=s.role,
                    status=SignerStatus(s.status),
                    signed_at=as_utc(s.signed_at),
                    ip_address=s.ip_address,
                )
                for s in signers
            ],
            fields=[
                SignatureField(
                    id=f.field_id,
                    kind=FieldKind(f.kind),
                    label=f.label,
                    required=f.required,
                    page=f.page,
                    x=f.x,
                    y=f.y,
                    width=f.width,
                    height=f.height,
                    signer_email=f.signer_email,
                    value=f.value,
                    signature_image=f.signature_image,
                )
                for f in fields
            ],
            created_at=as_utc(record.created_at),
            expires_at=as_utc(record.expires_at),
            completed_at=as_utc(record.completed_at),
            email_subject=record.email_subject,
            email_message=record.email_message,
            version=record.version,
        )

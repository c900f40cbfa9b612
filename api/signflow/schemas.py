from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from .utils import as_utc


class FieldKind(str, Enum):
    SIGNATURE = "signature"
    INITIAL = "initial"
    DATE = "date"
    TEXT = "text"
    CHECKBOX = "checkbox"


class SignerStatus(str, Enum):
    PENDING = "pending"
    SIGNED = "signed"
    DECLINED = "declined"


class SessionStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DECLINED = "declined"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.DECLINED, SessionStatus.EXPIRED})


class EventType(str, Enum):
    SENT = "sent"
    OPENED = "opened"
    SIGNED = "signed"
    DECLINED = "declined"
    EXPIRED = "expired"


# ---------- requests ----------

class SignerCreate(BaseModel):
    email: str
    name: str
    role: str = "Signer"

class FieldCreate(BaseModel):
    kind: FieldKind = FieldKind.SIGNATURE
    label: str = ""
    required: bool = True
    page: int = 1
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    signer_email: str

class SessionCreate(BaseModel):
    document_id: Optional[str] = None
    document_name: str
    document_url: str
    signers: List[SignerCreate]
    fields: List[FieldCreate] = []
    email_subject: Optional[str] = None
    email_message: Optional[str] = None
    expiration_days: Optional[int] = None

class FieldValue(BaseModel):
    field_id: str
    value: Optional[str] = None
    signature_image: Optional[str] = None

class SignSubmit(BaseModel):
    values: List[FieldValue]

class DeclineRequest(BaseModel):
    reason: str = ""

class ExtendRequest(BaseModel):
    additional_days: int


# ---------- aggregate ----------

class SignatureField(BaseModel):
    id: str
    kind: FieldKind
    label: str = ""
    required: bool = True
    page: int = 1
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    signer_email: str
    value: Optional[str] = None
    signature_image: Optional[str] = None

class Signer(BaseModel):
    email: str
    name: str
    role: str = "Signer"
    status: SignerStatus = SignerStatus.PENDING
    signed_at: Optional[datetime] = None
    ip_address: Optional[str] = None

class SigningSession(BaseModel):
    id: str
    document_id: str
    document_name: str
    document_url: str
    status: SessionStatus = SessionStatus.PENDING
    signers: List[Signer]
    fields: List[SignatureField] = []
    created_at: datetime
    expires_at: datetime
    completed_at: Optional[datetime] = None
    email_subject: str
    email_message: str
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def signer(self, email: str) -> Optional[Signer]:
        return next((s for s in self.signers if s.email == email), None)

    def fields_for(self, email: str) -> List[SignatureField]:
        return [f for f in self.fields if f.signer_email == email]

    def all_signed(self) -> bool:
        return all(s.status == SignerStatus.SIGNED for s in self.signers)

class SigningEvent(BaseModel):
    session_id: str
    signer_email: str = ""
    event_type: EventType
    timestamp: datetime
    ip_address: str = ""
    user_agent: str = ""
    prev_hash: Optional[str] = None
    hash: Optional[str] = None

    def chain_payload(self) -> dict:
        return {
            "session_id": self.session_id,
            "signer_email": self.signer_email,
            "event_type": self.event_type.value,
            "timestamp": as_utc(self.timestamp).isoformat(),
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
        }


# ---------- results ----------

class SigningResult(BaseModel):
    ok: bool
    message: str
    error: Optional[str] = None
    session_id: Optional[str] = None
    status: Optional[SessionStatus] = None
    missing_fields: List[str] = []

    @classmethod
    def success(cls, message: str, session: Optional[SigningSession] = None) -> "SigningResult":
        return cls(
            ok=True,
            message=message,
            session_id=session.id if session else None,
            status=session.status if session else None,
        )

    @classmethod
    def failure(cls, exc) -> "SigningResult":
        return cls(
            ok=False,
            message=exc.message,
            error=exc.kind,
            missing_fields=list(getattr(exc, "missing_fields", [])),
        )

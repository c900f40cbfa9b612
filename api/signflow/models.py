
from typing import Optional
from datetime import datetime
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field as ORMField

UTC_DATETIME = DateTime(timezone=True)

class SigningSessionRecord(SQLModel, table=True):
    id: str = ORMField(primary_key=True)
    document_id: str
    document_name: str
    document_url: str
    status: str = "pending"
    email_subject: str = ""
    email_message: str = ""
    created_at: datetime = ORMField(sa_type=UTC_DATETIME)
    expires_at: datetime = ORMField(sa_type=UTC_DATETIME)
    completed_at: Optional[datetime] = ORMField(default=None, sa_type=UTC_DATETIME)
    version: int = 0

class SignerRecord(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    session_id: str = ORMField(index=True)
    position: int
    email: str
    name: str
    role: str = "Signer"
    status: str = "pending"
    signed_at: Optional[datetime] = ORMField(default=None, sa_type=UTC_DATETIME)
    ip_address: Optional[str] = None

class SignatureFieldRecord(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    session_id: str = ORMField(index=True)
    field_id: str
    position: int
    kind: str  # signature|initial|date|text|checkbox
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

class SigningEventRecord(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    session_id: str = ORMField(index=True)
    signer_email: str = ""
    event_type: str   # sent|opened|signed|declined|expired
    timestamp: datetime = ORMField(sa_type=UTC_DATETIME)
    ip_address: str = ""
    user_agent: str = ""
    prev_hash: Optional[str] = None
    hash: Optional[str] = None

from sqlmodel import SQLModel, create_engine
from sqlalchemy.pool import StaticPool
from .config import DATABASE_URL

def make_engine(url: str = DATABASE_URL):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, **kwargs)
    return create_engine(url, echo=False, pool_pre_ping=True)

engine = make_engine()

def init_db(bind=None):
    from .models import SigningSessionRecord, SignerRecord, SignatureFieldRecord, SigningEventRecord  # noqa: F401
    SQLModel.metadata.create_all(bind or engine)

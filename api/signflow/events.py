import threading
from typing import Dict, List, Protocol

from sqlmodel import Session, select

from .models import SigningEventRecord
from .schemas import EventType, SigningEvent
from .utils import GENESIS_HASH, as_utc, chain_hash


class EventLog(Protocol):
    def append(self, event: SigningEvent) -> SigningEvent: ...
    def by_session(self, session_id: str) -> List[SigningEvent]: ...
    def verify(self, session_id: str) -> bool: ...


def _seal(event: SigningEvent, prev_hash: str) -> SigningEvent:
    sealed = event.model_copy()
    sealed.prev_hash = prev_hash
    sealed.hash = chain_hash(prev_hash, event.chain_payload())
    return sealed


def verify_chain(events: List[SigningEvent]) -> bool:
    prev_hash = GENESIS_HASH
    for event in events:
        if event.prev_hash != prev_hash:
            return False
        if event.hash != chain_hash(prev_hash, event.chain_payload()):
            return False
        prev_hash = event.hash
    return True


class MemoryEventLog:
    def __init__(self):
        self._events: Dict[str, List[SigningEvent]] = {}
        self._lock = threading.Lock()

    def append(self, event: SigningEvent) -> SigningEvent:
        with self._lock:
            chain = self._events.setdefault(event.session_id, [])
            prev_hash = chain[-1].hash if chain else GENESIS_HASH
            sealed = _seal(event, prev_hash)
            chain.append(sealed)
            return sealed.model_copy()

    def by_session(self, session_id: str) -> List[SigningEvent]:
        with self._lock:
            return [e.model_copy() for e in self._events.get(session_id, [])]

    def verify(self, session_id: str) -> bool:
        return verify_chain(self.by_session(session_id))


class SqlEventLog:
    def __init__(self, engine):
        self.engine = engine
        self._lock = threading.Lock()

    def append(self, event: SigningEvent) -> SigningEvent:
        with self._lock, Session(self.engine) as session:
            last = session.exec(
                select(SigningEventRecord)
                .where(SigningEventRecord.session_id == event.session_id)
                .order_by(SigningEventRecord.id.desc())
            ).first()
            sealed = _seal(event, last.hash if last else GENESIS_HASH)
            session.add(SigningEventRecord(
                session_id=sealed.session_id,
                signer_email=sealed.signer_email,
                event_type=sealed.event_type.value,
                timestamp=sealed.timestamp,
                ip_address=sealed.ip_address,
                user_agent=sealed.user_agent,
                prev_hash=sealed.prev_hash,
                hash=sealed.hash,
            ))
            session.commit()
            return sealed

    def by_session(self, session_id: str) -> List[SigningEvent]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(SigningEventRecord)
                .where(SigningEventRecord.session_id == session_id)
                .order_by(SigningEventRecord.id)
            ).all()
            return [
                SigningEvent(
                    session_id=r.session_id,
                    signer_email=r.signer_email,
                    event_type=EventType(r.event_type),
                    timestamp=as_utc(r.timestamp),
                    ip_address=r.ip_address,
                    user_agent=r.user_agent,
                    prev_hash=r.prev_hash,
                    hash=r.hash,
                )
                for r in rows
            ]

    def verify(self, session_id: str) -> bool:
        return verify_chain(self.by_session(session_id))

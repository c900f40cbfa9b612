import threading
from datetime import datetime, timedelta, timezone

import pytest

from signflow.db import init_db
from signflow.errors import ConflictError
from signflow.schemas import (
    FieldKind,
    SessionStatus,
    SignatureField,
    Signer,
    SignerStatus,
    SigningSession,
)
from signflow.store import LockRegistry, MemorySessionStore, SqlSessionStore


@pytest.fixture(params=["memory", "sql"])
def store(request, test_engine):
    if request.param == "memory":
        return MemorySessionStore()
    init_db(test_engine)
    return SqlSessionStore(test_engine)


def make_session(session_id="sign_1", status=SessionStatus.PENDING):
    now = datetime(2026, 1, 5, 9, 30, tzinfo=timezone.utc)
    return SigningSession(
        id=session_id,
        document_id="doc_1",
        document_name="Lease.pdf",
        document_url="https://files.example.com/lease.pdf",
        status=status,
        signers=[
            Signer(email="a@example.com", name="A", role="Tenant"),
            Signer(email="b@example.com", name="B", role="Landlord"),
        ],
        fields=[
            SignatureField(id="f1", kind=FieldKind.SIGNATURE, label="Tenant", page=2, x=10, y=20,
                           width=200, height=40, signer_email="a@example.com"),
            SignatureField(id="f2", kind=FieldKind.CHECKBOX, required=False, signer_email="b@example.com"),
        ],
        created_at=now,
        expires_at=now + timedelta(days=30),
        email_subject="Please sign: Lease.pdf",
        email_message="Please review and sign the attached document.",
    )


def test_add_then_get_round_trips_the_aggregate(store):
    original = make_session()
    store.add(original)
    loaded = store.get("sign_1")
    assert loaded == original
    assert [s.email for s in loaded.signers] == ["a@example.com", "b@example.com"]
    assert loaded.fields[0].page == 2 and loaded.fields[0].width == 200


def test_get_unknown_session_returns_none(store):
    assert store.get("nope") is None


def test_adding_a_duplicate_id_conflicts(store):
    store.add(make_session())
    with pytest.raises(ConflictError):
        store.add(make_session())


def test_save_persists_signer_and_field_changes(store):
    store.add(make_session())
    session = store.get("sign_1")
    signed_at = datetime(2026, 1, 6, 12, 0, tzinfo=timezone.utc)
    session.signers[0].status = SignerStatus.SIGNED
    session.signers[0].signed_at = signed_at
    session.signers[0].ip_address = "10.0.0.7"
    session.fields[0].value = "A"
    session.fields[0].signature_image = "data:image/png;base64,AAAA"
    session.status = SessionStatus.IN_PROGRESS
    store.save(session)

    loaded = store.get("sign_1")
    assert loaded.status == SessionStatus.IN_PROGRESS
    assert loaded.signers[0].status == SignerStatus.SIGNED
    assert loaded.signers[0].signed_at == signed_at
    assert loaded.signers[0].ip_address == "10.0.0.7"
    assert loaded.fields[0].value == "A"
    assert loaded.version == session.version == 1


def test_stale_write_is_rejected(store):
    store.add(make_session())
    first = store.get("sign_1")
    second = store.get("sign_1")
    first.status = SessionStatus.DECLINED
    store.save(first)

    second.status = SessionStatus.COMPLETED
    with pytest.raises(ConflictError):
        store.save(second)
    assert store.get("sign_1").status == SessionStatus.DECLINED


def test_reads_are_detached_snapshots(store):
    store.add(make_session())
    snapshot = store.get("sign_1")
    snapshot.signers[0].status = SignerStatus.DECLINED
    assert store.get("sign_1").signers[0].status == SignerStatus.PENDING


def test_list_filters_by_status(store):
    store.add(make_session("sign_1"))
    store.add(make_session("sign_2", status=SessionStatus.COMPLETED))
    assert {s.id for s in store.list()} == {"sign_1", "sign_2"}
    assert [s.id for s in store.list(SessionStatus.COMPLETED)] == ["sign_2"]
    assert store.list(SessionStatus.EXPIRED) == []


def test_lock_registry_serializes_holders_of_the_same_id():
    registry = LockRegistry()
    inside = []
    overlap = []

    def worker():
        with registry.hold("sign_1"):
            if inside:
                overlap.append(True)
            inside.append(True)
            threading.Event().wait(0.01)
            inside.pop()

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert overlap == []
    assert len(registry) == 0


def test_loaded_timestamps_are_timezone_aware(store):
    store.add(make_session())
    session = store.get("sign_1")
    session.signers[0].status = SignerStatus.SIGNED
    session.signers[0].signed_at = datetime(2026, 1, 6, 12, 0, tzinfo=timezone.utc)
    session.completed_at = datetime(2026, 1, 6, 12, 0, tzinfo=timezone.utc)
    store.save(session)

    loaded = store.get("sign_1")
    for value in (loaded.created_at, loaded.expires_at, loaded.completed_at, loaded.signers[0].signed_at):
        assert value.utcoffset() == timedelta(0)
    assert loaded.expires_at - loaded.created_at == timedelta(days=30)


def test_lock_registry_forgets_ids_once_released():
    registry = LockRegistry()
    with registry.hold("sign_1"):
        with registry.hold("sign_2"):
            assert len(registry) == 2
    assert len(registry) == 0

    with pytest.raises(RuntimeError):
        with registry.hold("sign_3"):
            raise RuntimeError("boom")
    assert len(registry) == 0

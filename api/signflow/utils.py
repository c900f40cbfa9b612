import hashlib, json
from datetime import datetime, timezone

GENESIS_HASH = "0" * 64

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value):
    # SQLite hands timestamps back without an offset
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)

def sha256_bytes(b: bytes) -> str:
    return hashlib.sha256(b).hexdigest()

def canonical_json(obj) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)

def chain_hash(prev_hash: str, payload: dict) -> str:
    return sha256_bytes((prev_hash + canonical_json(payload)).encode())

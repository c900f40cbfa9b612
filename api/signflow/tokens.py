from typing import Optional, Tuple
from urllib.parse import quote

from itsdangerous import BadSignature, URLSafeSerializer

from .config import BASE_URL, SECRET_KEY


class TokenCodec:
    """Per-signer access tokens.

    A token is ``session_id`` and ``email`` serialized and signed with the
    service secret. It is stable for a given pair, so a signer's link never
    changes, and it can be read back without any stored state. The payload
    is visible to anyone holding the link; only tampering is detected.
    """

    def __init__(self, secret_key: str = SECRET_KEY, base_url: str = BASE_URL):
        self._serializer = URLSafeSerializer(secret_key, salt="signing")
        self.base_url = base_url.rstrip("/")

    def issue(self, session_id: str, email: str) -> str:
        return self._serializer.dumps([session_id, email])

    def validate(self, session_id: str, email: str, token: Optional[str]) -> bool:
        if not token:
            return False
        return token == self.issue(session_id, email)

    def read(self, token: Optional[str]) -> Optional[Tuple[str, str]]:
        if not token:
            return None
        try:
            data = self._serializer.loads(token)
        except BadSignature:
            return None
        if not isinstance(data, list) or len(data) != 2:
            return None
        session_id, email = data
        return str(session_id), str(email)

    def signing_link(self, session_id: str, email: str) -> str:
        token = self.issue(session_id, email)
        return f"{self.base_url}/sign/{quote(session_id)}?token={token}"

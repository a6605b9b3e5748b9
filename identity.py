"""
Bearer-token identity resolution.

The handlers only need "which user does this token belong to"; the
resolver is injected into the app so tests can swap in a static mapping.
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from logs import get_logger

logger = get_logger(__name__)


def bearer_token(auth_header: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header[len("Bearer "):].strip()
    return token or None


class IdentityResolver(ABC):
    @abstractmethod
    def resolve(self, token: str) -> Optional[str]:
        """Return the user id for ``token`` or None when it is not valid."""


class TokenIdentityResolver(IdentityResolver):
    """Signed, time-limited tokens issued by /login."""

    def __init__(self, secret_key: str, max_age: int, salt: str = "rpos-bearer"):
        self.max_age = max_age
        self._serializer = URLSafeTimedSerializer(secret_key, salt=salt)

    def issue(self, user_id: str) -> str:
        return self._serializer.dumps({"uid": user_id})

    def resolve(self, token):
        try:
            claims = self._serializer.loads(token, max_age=self.max_age)
        except BadSignature as exc:
            # SignatureExpired is a BadSignature too
            logger.info("rejected bearer token: %s", exc.__class__.__name__)
            return None
        if not isinstance(claims, dict):
            return None
        return claims.get("uid")


class StaticIdentityResolver(IdentityResolver):
    def __init__(self, tokens: Dict[str, str]):
        self.tokens = dict(tokens)

    def resolve(self, token):
        return self.tokens.get(token)

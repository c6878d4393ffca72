# services/api/lens_api/tokens.py

import hashlib
import hmac
import string
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .config import Settings

_HEX = set(string.hexdigits)

def now_ms() -> int:
    return int(time.time() * 1000)


class TokenRejection(str, Enum):
    MALFORMED_TOKEN = "malformed_token"
    EXPIRED = "expired"
    INVALID_SIGNATURE = "invalid_signature"


@dataclass(frozen=True)
class TokenCheck:
    accepted: bool
    reason: Optional[TokenRejection] = None

    @classmethod
    def ok(cls) -> "TokenCheck":
        return cls(accepted=True)

    @classmethod
    def rejected(cls, reason: TokenRejection) -> "TokenCheck":
        return cls(accepted=False, reason=reason)


class TokenService:
    """
    Short-lived, image-scoped access tokens.

    Token format: "<issuedAtMillis>.<hex HMAC-SHA256(secret, '<imageId>-<issuedAtMillis>')>"

    Tokens are stateless and not single-use: any number of views may replay a
    token until the validity window elapses. A token is accepted while
    0 <= now - issuedAt <= ttl (the upper bound is inclusive).
    """

    def __init__(self, settings: Settings, clock: Callable[[], int] = now_ms):
        self._key = settings.IMAGE_SECRET_KEY.encode("utf-8")
        self.ttl_ms = int(settings.IMAGE_TOKEN_TTL_MS)
        self._clock = clock

    def _sign(self, image_id: str, issued_at: int) -> str:
        msg = f"{image_id}-{issued_at}".encode("utf-8")
        return hmac.new(self._key, msg, hashlib.sha256).hexdigest()

    def issue(self, image_id: str) -> str:
        issued_at = int(self._clock())
        return f"{issued_at}.{self._sign(image_id, issued_at)}"

    def verify(self, image_id: str, token: str, now: Optional[int] = None) -> TokenCheck:
        ts, sep, sig = (token or "").partition(".")
        if not sep or not (ts.isascii() and ts.isdigit()) or not sig or not set(sig) <= _HEX:
            return TokenCheck.rejected(TokenRejection.MALFORMED_TOKEN)

        issued_at = int(ts)
        current = int(self._clock()) if now is None else int(now)
        elapsed = current - issued_at
        if elapsed < 0 or elapsed > self.ttl_ms:
            return TokenCheck.rejected(TokenRejection.EXPIRED)

        expected = self._sign(image_id, issued_at)
        if not hmac.compare_digest(expected, sig):
            return TokenCheck.rejected(TokenRejection.INVALID_SIGNATURE)

        return TokenCheck.ok()

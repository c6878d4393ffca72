# services/api/lens_api/origin.py

from typing import Iterable, Optional, Tuple
from urllib.parse import urlsplit

from .config import Settings

_DEFAULT_PORTS = {"http": 80, "https": 443}

OriginKey = Tuple[str, str, int]

def pick_origin_header(referer: Optional[str], origin: Optional[str]) -> Optional[str]:
    """Referer wins over Origin when both are present."""
    return referer or origin or None

def parse_origin(value: str) -> Optional[OriginKey]:
    try:
        p = urlsplit(value.strip())
        port = p.port
    except ValueError:
        return None
    scheme = (p.scheme or "").lower()
    host = (p.hostname or "").lower()
    if scheme not in _DEFAULT_PORTS or not host:
        return None
    return (scheme, host, port or _DEFAULT_PORTS[scheme])


class OriginGuard:
    """
    Soft anti-hotlinking control: only pages served from an allow-listed
    front-end origin may pull protected images. Any non-browser client can
    forge these headers, so this never authenticates anyone.

    Modes:
      - "origin" (default): scheme/host/port of the header must equal an
        allow-listed origin exactly. A Referer path below it is fine.
      - "prefix": legacy startswith() match. Known weakness: it admits
        look-alike hosts such as "http://localhost:5173.evil.com".
    """

    def __init__(self, allowed_origins: Iterable[str], mode: str = "origin"):
        if mode not in ("origin", "prefix"):
            raise ValueError(f"unknown origin match mode: {mode}")
        self.mode = mode
        self._prefixes = [o for o in allowed_origins if o]
        self._origins = {k for k in (parse_origin(o) for o in self._prefixes) if k}

    @classmethod
    def from_settings(cls, settings: Settings) -> "OriginGuard":
        return cls(settings.allowed_origins(), mode=settings.ORIGIN_MATCH_MODE)

    def check(self, header: Optional[str]) -> bool:
        if not header:
            return False
        if self.mode == "prefix":
            return any(header.startswith(o) for o in self._prefixes)
        key = parse_origin(header)
        return key is not None and key in self._origins

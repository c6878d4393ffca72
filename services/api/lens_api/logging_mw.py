# services/api/lens_api/logging_mw.py

import logging
import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

LOG = logging.getLogger("lens")

REDACT_HEADERS = {"authorization", "cookie", "set-cookie"}

_TOKEN_PARAM = re.compile(r"(^|&)token=[^&]*")

def _redact_headers(headers: dict) -> dict:
    out = {}
    for k, v in headers.items():
        lk = k.lower()
        if lk in REDACT_HEADERS:
            out[k] = "[REDACTED]"
        else:
            out[k] = v if len(v) < 200 else (v[:200] + "…")
    return out

def redact_query(query: str) -> str:
    # access tokens stay valid for a minute; keep them out of logs
    return _TOKEN_PARAM.sub(r"\1token=[REDACTED]", query)[:400]

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable):
        rid = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = rid
        start = time.time()

        # image bodies are never logged
        safe_headers = _redact_headers(dict(request.headers))

        try:
            response: Response = await call_next(request)
            status = response.status_code
        except Exception:
            status = 500
            raise
        finally:
            dur_ms = int((time.time() - start) * 1000)

            LOG.info(
                "request",
                extra={
                    "request_id": rid,
                    "method": request.method,
                    "path": request.url.path,
                    "query": redact_query(str(request.url.query)),
                    "status": status,
                    "duration_ms": dur_ms,
                    "client": request.client.host if request.client else None,
                    "headers": safe_headers,
                },
            )

        response.headers["X-Request-Id"] = rid
        return response

class _RequestFieldsFilter(logging.Filter):
    """Fill request fields so non-request records still satisfy the format string."""

    FIELDS = ("request_id", "method", "path", "status", "duration_ms")

    def filter(self, record: logging.LogRecord) -> bool:
        for f in self.FIELDS:
            if not hasattr(record, f):
                setattr(record, f, "-")
        return True

def configure_logging(level: int = logging.INFO):
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s %(message)s | %(request_id)s %(method)s %(path)s %(status)s %(duration_ms)s",
    )
    for h in logging.getLogger().handlers:
        if not any(isinstance(f, _RequestFieldsFilter) for f in h.filters):
            h.addFilter(_RequestFieldsFilter())

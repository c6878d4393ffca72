# services/api/lens_api/gateway.py

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from .catalog import ImageCatalog
from .errors import Forbidden, NotFound
from .image_pipeline import ImageTransformPipeline, RenderOptions, RenderRequest
from .origin import OriginGuard
from .storage import Storage
from .tokens import TokenService

LOG = logging.getLogger("lens.gateway")

PROTECTED_IMAGE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Content-Disposition": "inline",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
}

@dataclass
class TokenGrant:
    token: str
    expires_in: int

@dataclass
class ServedImage:
    content_type: str
    data: bytes
    headers: Dict[str, str] = field(default_factory=lambda: dict(PROTECTED_IMAGE_HEADERS))


class ImageAccessGateway:
    """
    Token issuance and protected image delivery.

    view() runs its checks in a fixed order (token present, origin, token
    validity, image exists) before touching storage. The view counter is
    bumped from a background task; its failure is logged and never fails the
    response. Call drain() on shutdown to give pending counter writes a chance
    to land.
    """

    def __init__(
        self,
        *,
        tokens: TokenService,
        origin_guard: OriginGuard,
        catalog: ImageCatalog,
        storage: Storage,
        pipeline: ImageTransformPipeline,
    ):
        self.tokens = tokens
        self.origin_guard = origin_guard
        self.catalog = catalog
        self.storage = storage
        self.pipeline = pipeline
        self._pending: Set[asyncio.Task] = set()

    async def request_token(self, image_id: str) -> TokenGrant:
        image = await asyncio.to_thread(self.catalog.get, image_id)
        if image is None:
            raise NotFound("unknown_image")
        return TokenGrant(token=self.tokens.issue(image_id), expires_in=self.tokens.ttl_ms)

    async def view(
        self,
        image_id: str,
        token: Optional[str],
        referer: Optional[str],
        options: RenderOptions,
    ) -> ServedImage:
        if not token:
            LOG.warning("view rejected image=%s reason=no_token", image_id)
            raise Forbidden("no_token")

        if not self.origin_guard.check(referer):
            LOG.warning("view rejected image=%s reason=bad_origin origin=%r", image_id, (referer or "")[:200])
            raise Forbidden("bad_origin")

        check = self.tokens.verify(image_id, token)
        if not check.accepted:
            LOG.warning("view rejected image=%s reason=bad_token:%s", image_id, check.reason.value)
            raise Forbidden(f"bad_token:{check.reason.value}")

        image = await asyncio.to_thread(self.catalog.get, image_id)
        if image is None:
            raise NotFound("unknown_image")

        self._record_view(image_id)

        source = await self.storage.read_bytes(image.storage_uri)

        req = RenderRequest(source=source, content_type=image.content_type, options=options)
        try:
            rendered = await asyncio.to_thread(self.pipeline.render, req)
        except Exception:
            LOG.exception("render failed image=%s", image_id)
            raise

        return ServedImage(content_type=rendered.content_type, data=rendered.data)

    # -------------------------
    # View counter
    # -------------------------

    def _record_view(self, image_id: str) -> None:
        task = asyncio.get_running_loop().create_task(self._increment(image_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _increment(self, image_id: str) -> None:
        try:
            await asyncio.to_thread(self.catalog.increment_views, image_id)
        except Exception:
            LOG.exception("view counter update failed image=%s", image_id)

    @property
    def pending_view_updates(self) -> int:
        return len(self._pending)

    async def drain(self, timeout: float = 5.0) -> None:
        if not self._pending:
            return
        _, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
        if not_done:
            LOG.warning("dropping %d pending view counter updates at shutdown", len(not_done))

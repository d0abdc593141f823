from __future__ import annotations

import asyncio
import hashlib
import logging
import uuid

from app.config import settings
from app.integrations.redis import get_redis_sync
from app.services.errors import DuplicateScan


KEY_PREFIX = "attendance:scan:"
logger = logging.getLogger(__name__)


def scan_key(*, user_id: uuid.UUID, action: str, raw: str) -> str:
    digest = hashlib.sha256(f"{user_id}|{action}|{raw}".encode("utf-8")).hexdigest()
    return f"{KEY_PREFIX}{digest}"


class ScanGuard:
    """Suppresses repeated redemption of the same scan for a short window.

    The idempotency key is claimed with ``SET NX EX`` so two concurrent
    requests for the same payload cannot both proceed. When the guarded
    operation fails the key is released so the volunteer can retry at once.
    """

    def __init__(self, client=None, ttl_seconds: int | None = None) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds or settings.SCAN_DEDUP_TTL_SECONDS

    async def claim(self, *, user_id: uuid.UUID, action: str, raw: str) -> str | None:
        if self.client is None:
            return None
        key = scan_key(user_id=user_id, action=action, raw=raw)
        try:
            acquired = await asyncio.to_thread(self.client.set, key, "1", nx=True, ex=self.ttl_seconds)
        except Exception:
            logger.exception("Scan guard unavailable; continuing without de-duplication")
            return None
        if not acquired:
            raise DuplicateScan()
        return key

    async def release(self, key: str | None) -> None:
        if self.client is None or key is None:
            return
        try:
            await asyncio.to_thread(self.client.delete, key)
        except Exception:
            logger.exception("Failed to release scan key %s", key)


def get_scan_guard() -> ScanGuard:
    return ScanGuard(get_redis_sync() if settings.REDIS_ENABLED else None)

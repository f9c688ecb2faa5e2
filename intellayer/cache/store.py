"""Response cache store.

Wraps ResponseCacheRepository with the read/write rules the serving path
relies on:

- a row is a hit only while ``now < expires_at``;
- when the caller passes the resolved version number, a row stamped with
  any other number is a miss (sandbox and production share fingerprints);
- ``ttl_seconds <= 0`` disables the write.

The clock is injectable so expiry can be tested without sleeping.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from intellayer.models.common import utc_now
from intellayer.repositories.cache import ResponseCacheRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedResponse:
    payload: dict[str, Any]
    version_number: int
    fingerprint: str
    cached_at: datetime
    expires_at: datetime


class ResponseCacheStore:
    def __init__(
        self,
        session: AsyncSession,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = ResponseCacheRepository(session)
        self._clock = clock

    async def get(
        self,
        tenant_id: str,
        process_id: str,
        fingerprint: str,
        version_number: int | None = None,
    ) -> CachedResponse | None:
        row = await self._repo.get(tenant_id, process_id, fingerprint)
        if row is None:
            return None
        if self._clock() >= row.expires_at:
            return None
        if version_number is not None and row.version_number != version_number:
            logger.debug(
                "Cache entry for %s stamped v%d, resolved v%d; treating as miss",
                process_id, row.version_number, version_number,
            )
            return None
        return CachedResponse(
            payload=row.payload,
            version_number=row.version_number,
            fingerprint=row.fingerprint,
            cached_at=row.cached_at,
            expires_at=row.expires_at,
        )

    async def set(
        self,
        tenant_id: str,
        process_id: str,
        fingerprint: str,
        payload: dict[str, Any],
        ttl_seconds: int,
        version_number: int,
    ) -> CachedResponse | None:
        """Upsert an entry. Returns None when caching is disabled."""
        if ttl_seconds <= 0:
            return None
        now = self._clock()
        row = await self._repo.upsert(
            tenant_id=tenant_id,
            process_id=process_id,
            fingerprint=fingerprint,
            payload=payload,
            version_number=version_number,
            cached_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        return CachedResponse(
            payload=row.payload,
            version_number=row.version_number,
            fingerprint=row.fingerprint,
            cached_at=row.cached_at,
            expires_at=row.expires_at,
        )

    async def invalidate_all(self, process_id: str) -> int:
        """Delete every entry of the process, across tenants and versions."""
        deleted = await self._repo.delete_for_process(process_id)
        logger.info("Invalidated %d cache entries for process %s", deleted, process_id)
        return deleted

    async def count(self, process_id: str) -> int:
        return await self._repo.count_for_process(process_id)

    async def purge_expired(self) -> int:
        """Reaper hook: remove rows already past expiry. Never needed for correctness."""
        deleted = await self._repo.delete_expired(self._clock())
        if deleted:
            logger.info("Purged %d expired cache entries", deleted)
        return deleted

"""Expired cache entry cleanup.

Reads already ignore expired rows, so this job only reclaims storage. Run it
from a scheduler with ``python -m intellayer.cache.cleanup``.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from intellayer.cache.store import ResponseCacheStore
from intellayer.db.session import session_scope
from intellayer.models.common import utc_now

logger = logging.getLogger(__name__)


async def run_cache_cleanup(
    factory: async_sessionmaker[AsyncSession] | None = None,
    *,
    clock: Callable[[], datetime] = utc_now,
) -> int:
    started = clock()
    async with session_scope(factory) as session:
        deleted = await ResponseCacheStore(session, clock=clock).purge_expired()
    logger.info("Cache cleanup finished at %s: %d entries removed", started.isoformat(), deleted)
    return deleted


if __name__ == "__main__":
    from intellayer.config.settings import get_settings
    from intellayer.observability.logging import configure_logging

    configure_logging(get_settings())
    asyncio.run(run_cache_cleanup())

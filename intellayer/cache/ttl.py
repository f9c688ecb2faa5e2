"""Effective cache TTL for a version's configuration."""

from collections.abc import Mapping
from typing import Any

from intellayer.models.version import ProcessConfig

DEFAULT_CACHE_TTL_SECONDS = 900


def effective_ttl_seconds(
    config: Mapping[str, Any] | ProcessConfig,
    default: int = DEFAULT_CACHE_TTL_SECONDS,
) -> int:
    """TTL in seconds; 0 means do not cache.

    ``cacheEnabled: false`` wins over any ``cacheTtlSeconds``. A missing
    TTL falls back to ``default``; negative values disable caching.
    """
    if isinstance(config, ProcessConfig):
        enabled, ttl = config.cache_enabled, config.cache_ttl_seconds
    else:
        enabled = config.get("cacheEnabled", True)
        ttl = config.get("cacheTtlSeconds")

    if enabled is False:
        return 0
    if ttl is None:
        return default
    return max(int(ttl), 0)

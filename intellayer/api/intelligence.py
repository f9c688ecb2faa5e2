"""Public generate endpoints.

POST /v1/intelligence/{process_id}/generate           PRODUCTION
POST /v1/sandbox/intelligence/{process_id}/generate   SANDBOX

Flow: environment guard -> X-Version parse -> resolve -> cache lookup by
fingerprint -> on miss, LLM gateway -> cache write stamped with the
resolved version number. ``Cache-Control: no-cache`` skips both the
lookup and the write.

The read transaction is committed before the gateway call, and the cache
write runs in its own short transaction.
"""

import logging
import time
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from intellayer.api.dependencies import (
    ApiKeyContext,
    get_api_key_context,
    get_cache_store,
    get_gateway,
    get_resolver,
)
from intellayer.cache.fingerprint import fingerprint
from intellayer.cache.store import ResponseCacheStore
from intellayer.cache.ttl import effective_ttl_seconds
from intellayer.config.settings import Settings, get_settings
from intellayer.db.session import get_async_session
from intellayer.llm.gateway import IntelligenceGateway
from intellayer.models.common import Environment, new_uuid7
from intellayer.versioning.errors import EnvironmentMismatchError
from intellayer.versioning.headers import build_version_headers, parse_version_header
from intellayer.versioning.resolver import VersionResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["intelligence"])


# ---------------------------------------------------------------------------
# Request schema
# ---------------------------------------------------------------------------


class GenerateRequest(BaseModel):
    input: dict[str, Any]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def new_request_id() -> str:
    return f"req_{new_uuid7().hex}"


def assert_environment(ctx: ApiKeyContext, endpoint_environment: Environment) -> None:
    if ctx.environment != endpoint_environment:
        structlog.get_logger("intellayer.security").warning(
            "api_key_environment_mismatch",
            tenant_id=ctx.tenant_id,
            key_environment=ctx.environment.value,
            endpoint_environment=endpoint_environment.value,
        )
        raise EnvironmentMismatchError(ctx.environment.value, endpoint_environment.value)


def _wants_bypass(cache_control: str | None) -> bool:
    return cache_control is not None and "no-cache" in cache_control.lower()


async def _generate(
    endpoint_environment: Environment,
    process_id: str,
    body: GenerateRequest,
    request: Request,
    ctx: ApiKeyContext,
    x_version: str | None,
    cache_control: str | None,
    resolver: VersionResolver,
    cache: ResponseCacheStore,
    gateway: IntelligenceGateway,
    settings: Settings,
    session: AsyncSession,
) -> JSONResponse:
    started = time.perf_counter()
    request_id = new_request_id()
    request.state.request_id = request_id
    structlog.contextvars.bind_contextvars(request_id=request_id)
    try:
        assert_environment(ctx, endpoint_environment)
        pinned = parse_version_header(x_version, settings.MAX_PINNED_VERSION)
        resolved = await resolver.resolve(
            process_id, ctx.tenant_id, endpoint_environment, pinned,
        )
        version = resolved.version

        bypass = _wants_bypass(cache_control)
        ttl = effective_ttl_seconds(version.config, settings.DEFAULT_CACHE_TTL_SECONDS)
        key = fingerprint(ctx.tenant_id, process_id, body.input)

        hit = None
        if ttl > 0 and not bypass:
            hit = await cache.get(ctx.tenant_id, process_id, key, version.version_number)

        if hit is not None:
            data = hit.payload
        else:
            # No transaction or pooled connection is held across the LLM call.
            await session.commit()
            result = await gateway.generate(body.input, version.config)
            data = result.data
            if ttl > 0 and not bypass:
                await cache.set(
                    ctx.tenant_id, process_id, key, data, ttl, version.version_number,
                )
                await session.commit()

        latency_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Served process %s v%d (%s) cached=%s in %dms",
            process_id, version.version_number, endpoint_environment.value,
            hit is not None, latency_ms,
        )

        headers = build_version_headers(resolved)
        headers["X-Cache"] = "HIT" if hit is not None else "MISS"
        headers["X-Request-Id"] = request_id
        return JSONResponse(
            content={
                "success": True,
                "data": data,
                "meta": {
                    "request_id": request_id,
                    "version": version.version_number,
                    "cached": hit is not None,
                    "latency_ms": latency_ms,
                },
            },
            headers=headers,
        )
    finally:
        structlog.contextvars.unbind_contextvars("request_id")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/intelligence/{process_id}/generate")
async def generate_production(
    process_id: str,
    body: GenerateRequest,
    request: Request,
    ctx: ApiKeyContext = Depends(get_api_key_context),
    x_version: str | None = Header(default=None),
    cache_control: str | None = Header(default=None),
    resolver: VersionResolver = Depends(get_resolver),
    cache: ResponseCacheStore = Depends(get_cache_store),
    gateway: IntelligenceGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
    session: AsyncSession = Depends(get_async_session),
) -> JSONResponse:
    """Serve a production request."""
    return await _generate(
        Environment.PRODUCTION, process_id, body, request, ctx,
        x_version, cache_control, resolver, cache, gateway, settings, session,
    )


@router.post("/sandbox/intelligence/{process_id}/generate")
async def generate_sandbox(
    process_id: str,
    body: GenerateRequest,
    request: Request,
    ctx: ApiKeyContext = Depends(get_api_key_context),
    x_version: str | None = Header(default=None),
    cache_control: str | None = Header(default=None),
    resolver: VersionResolver = Depends(get_resolver),
    cache: ResponseCacheStore = Depends(get_cache_store),
    gateway: IntelligenceGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
    session: AsyncSession = Depends(get_async_session),
) -> JSONResponse:
    """Serve a sandbox request."""
    return await _generate(
        Environment.SANDBOX, process_id, body, request, ctx,
        x_version, cache_control, resolver, cache, gateway, settings, session,
    )

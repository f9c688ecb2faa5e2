"""FastAPI dependency factories.

Request identity arrives from the authentication layer in front of this
service as trusted headers; this module only reads them. Services take
the request's AsyncSession via Depends(get_async_session).
"""

from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from intellayer.audit.trail import AuditTrail, get_audit_trail
from intellayer.cache.store import ResponseCacheStore
from intellayer.config.settings import Settings, get_settings
from intellayer.db.session import get_async_session
from intellayer.llm.gateway import HttpGateway, IntelligenceGateway
from intellayer.models.common import Environment
from intellayer.versioning.promotion import PromotionService
from intellayer.versioning.publishing import PublishingService
from intellayer.versioning.resolver import VersionResolver
from intellayer.versioning.rollback import RollbackService

# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApiKeyContext:
    tenant_id: str
    environment: Environment


@dataclass(frozen=True)
class OperatorContext:
    tenant_id: str
    user_id: str


async def get_api_key_context(
    x_tenant_id: str | None = Header(default=None),
    x_api_key_environment: str | None = Header(default=None),
) -> ApiKeyContext:
    if not x_tenant_id or not x_api_key_environment:
        raise HTTPException(status_code=401, detail="Missing API key context")
    try:
        environment = Environment(x_api_key_environment.upper())
    except ValueError:
        raise HTTPException(status_code=401, detail="Unknown API key environment")
    return ApiKeyContext(tenant_id=x_tenant_id, environment=environment)


async def get_operator_context(
    x_tenant_id: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
) -> OperatorContext:
    if not x_tenant_id or not x_user_id:
        raise HTTPException(status_code=401, detail="Missing operator context")
    return OperatorContext(tenant_id=x_tenant_id, user_id=x_user_id)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@lru_cache
def _default_gateway() -> HttpGateway:
    settings = get_settings()
    return HttpGateway(
        settings.LLM_GATEWAY_URL,
        timeout=settings.LLM_TIMEOUT_SECONDS,
        api_key=settings.LLM_API_KEY,
    )


async def get_gateway() -> IntelligenceGateway:
    return _default_gateway()


async def get_audit() -> AuditTrail:
    return get_audit_trail()


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


async def get_resolver(
    session: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> VersionResolver:
    return VersionResolver(session, sunset_days=settings.SUNSET_DAYS)


async def get_cache_store(
    session: AsyncSession = Depends(get_async_session),
) -> ResponseCacheStore:
    return ResponseCacheStore(session)


async def get_publishing_service(
    session: AsyncSession = Depends(get_async_session),
    audit: AuditTrail = Depends(get_audit),
) -> PublishingService:
    return PublishingService(session, audit=audit)


async def get_promotion_service(
    session: AsyncSession = Depends(get_async_session),
    audit: AuditTrail = Depends(get_audit),
) -> PromotionService:
    return PromotionService(session, audit=audit)


async def get_rollback_service(
    session: AsyncSession = Depends(get_async_session),
    audit: AuditTrail = Depends(get_audit),
) -> RollbackService:
    return RollbackService(session, audit=audit)

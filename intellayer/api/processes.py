"""Operator endpoints for the process version lifecycle.

POST /v1/processes                                       create (sandbox v1)
GET  /v1/processes/{process_id}/versions                 history + pointers
POST /v1/processes/{process_id}/versions                 publish sandbox config
GET  /v1/processes/{process_id}/versions/diff            compare two versions
GET  /v1/processes/{process_id}/promotion-preview        dry-run promotion
POST /v1/processes/{process_id}/promote                  sandbox -> production
POST /v1/processes/{process_id}/rollback                 restore into sandbox
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from intellayer.api.dependencies import (
    OperatorContext,
    get_operator_context,
    get_promotion_service,
    get_publishing_service,
    get_resolver,
    get_rollback_service,
)
from intellayer.models.version import ProcessConfig, ProcessVersion
from intellayer.versioning.diff import (
    VersionDiff,
    compare_configs,
    format_field_path,
    format_value_for_display,
)
from intellayer.versioning.errors import VersionNotFoundError
from intellayer.versioning.promotion import PromotionService
from intellayer.versioning.publishing import PublishingService
from intellayer.versioning.resolver import VersionResolver
from intellayer.versioning.rollback import RollbackService

router = APIRouter(prefix="/v1/processes", tags=["processes"])


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class CreateProcessRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    config: ProcessConfig


class PublishRequest(BaseModel):
    config: ProcessConfig
    change_notes: str | None = None


class PromoteRequest(BaseModel):
    version_id: UUID
    change_notes: str | None = None


class RollbackRequest(BaseModel):
    target_version_id: UUID
    change_notes: str | None = None


class VersionResponse(BaseModel):
    version_id: str
    version_number: int
    environment: str
    status: str
    config: dict[str, Any]
    change_notes: str | None
    promoted_by: str | None
    created_at: datetime
    published_at: datetime | None
    deprecated_at: datetime | None


class ProcessResponse(BaseModel):
    process_id: str
    name: str
    description: str
    version: VersionResponse


class VersionHistoryResponse(BaseModel):
    process_id: str
    sandbox: VersionResponse | None
    production: VersionResponse | None
    versions: list[VersionResponse]


class ChangeResponse(BaseModel):
    path: str
    label: str
    type: str
    old_value: Any
    new_value: Any
    old_display: str
    new_display: str


class DiffResponse(BaseModel):
    summary: str
    has_changes: bool
    added: int
    removed: int
    modified: int
    changes: list[ChangeResponse]


class PromotionPreviewResponse(BaseModel):
    source: VersionResponse
    current_production: VersionResponse | None
    cache_entry_count: int
    diff: DiffResponse


class PromoteResponse(BaseModel):
    promoted: VersionResponse
    deprecated: VersionResponse | None
    cache_invalidated: int


class RollbackResponse(BaseModel):
    created: VersionResponse
    source: VersionResponse
    deprecated: VersionResponse | None
    cache_invalidated: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config_dict(config: ProcessConfig) -> dict[str, Any]:
    return config.model_dump(by_alias=True, exclude_unset=True)


def _version_response(v: ProcessVersion) -> VersionResponse:
    return VersionResponse(
        version_id=str(v.version_id),
        version_number=v.version_number,
        environment=v.environment.value,
        status=v.status.value,
        config=v.config,
        change_notes=v.change_notes,
        promoted_by=v.promoted_by,
        created_at=v.created_at,
        published_at=v.published_at,
        deprecated_at=v.deprecated_at,
    )


def _optional(v: ProcessVersion | None) -> VersionResponse | None:
    return _version_response(v) if v is not None else None


def _diff_response(diff: VersionDiff) -> DiffResponse:
    return DiffResponse(
        summary=diff.summary,
        has_changes=diff.has_changes,
        added=diff.change_count.added,
        removed=diff.change_count.removed,
        modified=diff.change_count.modified,
        changes=[
            ChangeResponse(
                path=c.path,
                label=format_field_path(c.path),
                type=c.type,
                old_value=c.old_value,
                new_value=c.new_value,
                old_display=format_value_for_display(c.old_value),
                new_display=format_value_for_display(c.new_value),
            )
            for c in diff.changes
        ],
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("", status_code=201, response_model=ProcessResponse)
async def create_process(
    body: CreateProcessRequest,
    ctx: OperatorContext = Depends(get_operator_context),
    publishing: PublishingService = Depends(get_publishing_service),
) -> ProcessResponse:
    process, version = await publishing.create_process(
        ctx.tenant_id, body.name, _config_dict(body.config),
        description=body.description, actor_id=ctx.user_id,
    )
    return ProcessResponse(
        process_id=process.process_id,
        name=process.name,
        description=process.description,
        version=_version_response(version),
    )


@router.get("/{process_id}/versions", response_model=VersionHistoryResponse)
async def list_versions(
    process_id: str,
    ctx: OperatorContext = Depends(get_operator_context),
    resolver: VersionResolver = Depends(get_resolver),
) -> VersionHistoryResponse:
    grouped = await resolver.versions_by_environment(process_id, ctx.tenant_id)
    return VersionHistoryResponse(
        process_id=process_id,
        sandbox=_optional(grouped.sandbox),
        production=_optional(grouped.production),
        versions=[_version_response(v) for v in grouped.all_versions],
    )


@router.post("/{process_id}/versions", status_code=201, response_model=VersionResponse)
async def publish_version(
    process_id: str,
    body: PublishRequest,
    ctx: OperatorContext = Depends(get_operator_context),
    publishing: PublishingService = Depends(get_publishing_service),
) -> VersionResponse:
    version = await publishing.publish_sandbox(
        process_id, ctx.tenant_id, _config_dict(body.config),
        change_notes=body.change_notes, actor_id=ctx.user_id,
    )
    return _version_response(version)


@router.get("/{process_id}/versions/diff", response_model=DiffResponse)
async def diff_versions(
    process_id: str,
    from_version_id: UUID = Query(...),
    to_version_id: UUID = Query(...),
    ctx: OperatorContext = Depends(get_operator_context),
    resolver: VersionResolver = Depends(get_resolver),
) -> DiffResponse:
    """Changes going from ``from_version_id`` to ``to_version_id``."""
    grouped = await resolver.versions_by_environment(process_id, ctx.tenant_id)
    by_id = {v.version_id: v for v in grouped.all_versions}
    old = by_id.get(from_version_id)
    new = by_id.get(to_version_id)
    if old is None or new is None:
        raise VersionNotFoundError()
    return _diff_response(compare_configs(new.config, old.config))


@router.get("/{process_id}/promotion-preview", response_model=PromotionPreviewResponse)
async def promotion_preview(
    process_id: str,
    version_id: UUID = Query(...),
    ctx: OperatorContext = Depends(get_operator_context),
    promotion: PromotionService = Depends(get_promotion_service),
) -> PromotionPreviewResponse:
    preview = await promotion.preview(process_id, ctx.tenant_id, version_id)
    return PromotionPreviewResponse(
        source=_version_response(preview.source),
        current_production=_optional(preview.current_production),
        cache_entry_count=preview.cache_entry_count,
        diff=_diff_response(preview.diff),
    )


@router.post("/{process_id}/promote", response_model=PromoteResponse)
async def promote(
    process_id: str,
    body: PromoteRequest,
    ctx: OperatorContext = Depends(get_operator_context),
    promotion: PromotionService = Depends(get_promotion_service),
) -> PromoteResponse:
    result = await promotion.promote(
        process_id, ctx.tenant_id, body.version_id,
        change_notes=body.change_notes, actor_id=ctx.user_id,
    )
    return PromoteResponse(
        promoted=_version_response(result.promoted),
        deprecated=_optional(result.deprecated),
        cache_invalidated=result.cache_invalidated,
    )


@router.post("/{process_id}/rollback", response_model=RollbackResponse)
async def rollback(
    process_id: str,
    body: RollbackRequest,
    ctx: OperatorContext = Depends(get_operator_context),
    rollback_service: RollbackService = Depends(get_rollback_service),
) -> RollbackResponse:
    result = await rollback_service.rollback(
        process_id, ctx.tenant_id, body.target_version_id,
        change_notes=body.change_notes, actor_id=ctx.user_id,
    )
    return RollbackResponse(
        created=_version_response(result.created),
        source=_version_response(result.source),
        deprecated=_optional(result.deprecated),
        cache_invalidated=result.cache_invalidated,
    )

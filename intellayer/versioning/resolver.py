"""Request-time version resolution.

Maps (tenant, process, environment, optional pinned number) to exactly one
servable version. Plain reads only: no locks, no retries, no network.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from intellayer.db.tables import ProcessVersionRow
from intellayer.models.common import Environment, VersionStatus
from intellayer.models.version import ProcessVersion, ResolvedVersion, VersionsByEnvironment
from intellayer.repositories.versions import ProcessRepository, ProcessVersionRepository
from intellayer.versioning.errors import (
    NoActiveVersionError,
    ProcessNotFoundError,
    VersionEnvironmentMismatchError,
    VersionNotFoundError,
)
from intellayer.versioning.sunset import SUNSET_DAYS, calculate_sunset_date

security_log = structlog.get_logger("intellayer.security")


class VersionResolver:
    """Resolves the version that serves a request."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        sunset_days: int = SUNSET_DAYS,
    ) -> None:
        self._processes = ProcessRepository(session)
        self._versions = ProcessVersionRepository(session)
        self._sunset_days = sunset_days

    async def resolve(
        self,
        process_id: str,
        tenant_id: str,
        environment: Environment,
        pinned_version_number: int | None = None,
    ) -> ResolvedVersion:
        """Resolve a request to one ACTIVE or DEPRECATED version.

        Raises:
            NoActiveVersionError: No pin and no ACTIVE version in the environment.
            VersionNotFoundError: Pinned number missing, DRAFT, or owned by
                another tenant.
            VersionEnvironmentMismatchError: Pinned number lives in the
                other environment.
        """
        if pinned_version_number is None:
            row = await self._versions.get_active(process_id, environment, tenant_id)
            if row is None:
                raise NoActiveVersionError(process_id, environment.value)
            return ResolvedVersion(
                version=ProcessVersion.model_validate(row),
                is_deprecated=False,
                latest_version_number=row.version_number,
            )

        row = await self._versions.get_by_number(
            process_id, tenant_id, pinned_version_number,
        )
        if row is None:
            available = await self._available_versions(process_id, tenant_id, environment)
            raise VersionNotFoundError(
                f"Version {pinned_version_number} not found",
                version_number=pinned_version_number,
                available_versions=available,
            )

        if row.environment != environment.value:
            security_log.warning(
                "version_environment_mismatch",
                tenant_id=tenant_id,
                process_id=process_id,
                requested_version=pinned_version_number,
                requested_environment=environment.value,
                version_environment=row.environment,
            )
            raise VersionEnvironmentMismatchError(
                pinned_version_number, environment.value, row.environment,
            )

        if row.status == VersionStatus.DRAFT.value:
            available = await self._versions.servable_numbers(process_id, environment)
            raise VersionNotFoundError(
                f"Version {pinned_version_number} is not published",
                version_number=pinned_version_number,
                available_versions=available,
            )

        latest = await self._latest_number(row, environment)
        if row.status == VersionStatus.DEPRECATED.value:
            deprecated_at = row.deprecated_at or row.created_at
            return ResolvedVersion(
                version=ProcessVersion.model_validate(row),
                is_deprecated=True,
                sunset_at=calculate_sunset_date(deprecated_at, self._sunset_days),
                latest_version_number=latest,
            )

        return ResolvedVersion(
            version=ProcessVersion.model_validate(row),
            is_deprecated=False,
            latest_version_number=latest,
        )

    async def versions_by_environment(
        self, process_id: str, tenant_id: str,
    ) -> VersionsByEnvironment:
        """Current ACTIVE pointer per environment and the full history.

        Raises:
            ProcessNotFoundError: Process absent, deleted, or another tenant's.
        """
        process = await self._processes.get_for_tenant(process_id, tenant_id)
        if process is None:
            raise ProcessNotFoundError(process_id)

        rows = await self._versions.list_for_process(process_id)
        history = [ProcessVersion.model_validate(r) for r in rows]
        active = {
            v.environment: v for v in history if v.status == VersionStatus.ACTIVE
        }
        return VersionsByEnvironment(
            sandbox=active.get(Environment.SANDBOX),
            production=active.get(Environment.PRODUCTION),
            all_versions=history,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _available_versions(
        self, process_id: str, tenant_id: str, environment: Environment,
    ) -> list[int]:
        # Never leak another tenant's version numbers.
        if await self._processes.get_for_tenant(process_id, tenant_id) is None:
            return []
        return await self._versions.servable_numbers(process_id, environment)

    async def _latest_number(self, row: ProcessVersionRow, environment: Environment) -> int:
        active = await self._versions.get_active(row.process_id, environment)
        if active is not None:
            return active.version_number
        servable = await self._versions.servable_numbers(row.process_id, environment)
        return max(servable, default=row.version_number)

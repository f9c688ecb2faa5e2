"""Typed errors for version resolution and the version lifecycle.

Every error carries a stable ``code``, the HTTP status the public layer
maps it to, and enough ``details`` for a caller to react without guessing.
None of them is retried at this layer; only VersionConflictError is
flagged as retryable.
"""

from typing import Any


class VersioningError(Exception):
    """Base class for all version lifecycle errors."""

    code: str = "VERSIONING_ERROR"
    status_code: int = 400
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ProcessNotFoundError(VersioningError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, process_id: str) -> None:
        super().__init__("Process not found", {"process_id": process_id})


class NoActiveVersionError(VersioningError):
    """No servable version for this process/environment."""

    code = "NO_ACTIVE_VERSION"
    status_code = 404

    def __init__(self, process_id: str, environment: str) -> None:
        super().__init__(
            f"Process has no active version for the {environment.lower()} environment",
            {"process_id": process_id, "environment": environment},
        )


class VersionNotFoundError(VersioningError):
    """Bad pin, draft pin, or unknown version id."""

    code = "VERSION_NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        message: str = "Version not found",
        *,
        version_number: int | None = None,
        available_versions: list[int] | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if version_number is not None:
            details["requested_version"] = version_number
        if available_versions is not None:
            details["available_versions"] = available_versions
        super().__init__(message, details)
        self.version_number = version_number
        self.available_versions = available_versions or []


class VersionEnvironmentMismatchError(VersioningError):
    """A key pinned a version that belongs to the other environment."""

    code = "VERSION_ENVIRONMENT_MISMATCH"
    status_code = 403

    def __init__(self, version_number: int, requested: str, actual: str) -> None:
        super().__init__(
            f"Version {version_number} is not available in the {requested.lower()} environment",
            {
                "requested_version": version_number,
                "requested_environment": requested,
                "version_environment": actual,
            },
        )
        self.requested_environment = requested
        self.version_environment = actual


class EnvironmentMismatchError(VersioningError):
    """An API key was used against the other environment's endpoint."""

    code = "ENVIRONMENT_MISMATCH"
    status_code = 403

    def __init__(self, key_environment: str, endpoint_environment: str) -> None:
        super().__init__(
            f"{key_environment.lower()} API key cannot access "
            f"{endpoint_environment.lower()} endpoints",
            {
                "key_environment": key_environment,
                "endpoint_environment": endpoint_environment,
            },
        )


class InvalidVersionHeaderError(VersioningError):
    code = "INVALID_VERSION"
    status_code = 400

    def __init__(self, message: str, provided_value: str) -> None:
        super().__init__(message, {"provided_value": provided_value})


class NotSandboxVersionError(VersioningError):
    code = "NOT_SANDBOX_VERSION"
    status_code = 400

    def __init__(self, version_number: int) -> None:
        super().__init__(
            "Can only promote SANDBOX versions",
            {"version_number": version_number},
        )


class NotActiveVersionError(VersioningError):
    code = "NOT_ACTIVE_VERSION"
    status_code = 400

    def __init__(self, version_number: int, status: str) -> None:
        super().__init__(
            "Can only promote ACTIVE versions",
            {"version_number": version_number, "status": status},
        )


class CannotRollbackToCurrentSandboxError(VersioningError):
    code = "CANNOT_ROLLBACK_TO_CURRENT_SANDBOX"
    status_code = 400

    def __init__(self, version_number: int) -> None:
        super().__init__(
            "Cannot rollback to the current active sandbox version",
            {"version_number": version_number},
        )


class VersionConflictError(VersioningError):
    """A concurrent lifecycle change won the race for this process."""

    code = "VERSION_CONFLICT"
    status_code = 409
    retryable = True

    def __init__(self, process_id: str, operation: str) -> None:
        super().__init__(
            f"Concurrent {operation} detected for this process; retry the request",
            {"process_id": process_id, "operation": operation, "retryable": True},
        )

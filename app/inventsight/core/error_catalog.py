from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    NOT_FOUND = ErrorDefinition(
        "NOT_FOUND",
        "Transfer request not found",
        status.HTTP_404_NOT_FOUND,
    )
    INVALID_TRANSITION = ErrorDefinition(
        "INVALID_TRANSITION",
        "Action is not allowed in the current status",
        status.HTTP_409_CONFLICT,
    )
    QUANTITY_EXCEEDED = ErrorDefinition(
        "QUANTITY_EXCEEDED",
        "Quantity out of allowed range",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    CONFLICT_VERSION = ErrorDefinition(
        "CONFLICT_VERSION",
        "Transfer request was modified concurrently",
        status.HTTP_409_CONFLICT,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)


class _CatalogError(AppError):
    definition: ErrorDefinition

    def __init__(self, details: object | None = None):
        super().__init__(self.definition, details=details)


class ValidationError(_CatalogError):
    definition = ErrorCatalog.VALIDATION_ERROR

    @classmethod
    def for_field(cls, field: str, message: str, **extra) -> "ValidationError":
        return cls(details={"field": field, "message": message, **extra})


class PermissionDenied(_CatalogError):
    definition = ErrorCatalog.PERMISSION_DENIED


class InvalidTransition(_CatalogError):
    definition = ErrorCatalog.INVALID_TRANSITION


class QuantityExceeded(_CatalogError):
    definition = ErrorCatalog.QUANTITY_EXCEEDED


class NotFound(_CatalogError):
    definition = ErrorCatalog.NOT_FOUND


class ConflictVersion(_CatalogError):
    definition = ErrorCatalog.CONFLICT_VERSION

"""
Custom exception classes for the application.

All errors carry a machine-readable code and an HTTP status so routes can
turn them into the standard error envelope.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PROJECT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# CONVERSION ERRORS
# ===================

class InvalidQuantityError(ValidationError):
    """Quantity is negative or not a finite number."""

    def __init__(self, value: Any, stream: Optional[str] = None):
        super().__init__(
            code="INVALID_QUANTITY",
            message="Quantity must be a finite number >= 0",
            details={"value": str(value), "stream": stream}
        )
        self.value = value
        self.stream = stream


class UnsupportedUnitError(ValidationError):
    """Unit is outside the waste material catalogue's units."""

    def __init__(self, unit: Any, stream: Optional[str] = None):
        super().__init__(
            code="UNSUPPORTED_UNIT",
            message=f"Unsupported unit: {unit}",
            details={"unit": str(unit), "stream": stream}
        )
        self.unit = unit
        self.stream = stream


class MissingConversionDataError(ValidationError):
    """
    Conversion needs a density, thickness or kg/m factor that is unknown.

    Distinct from InvalidQuantityError: the quantity is fine, the user
    just has to supply the missing factor.
    """

    def __init__(self, field: str, unit: str, stream: Optional[str] = None):
        super().__init__(
            code=f"MISSING_{field.upper()}",
            message=f"Cannot convert {unit} to tonnes without {field}",
            details={"field": field, "unit": unit, "stream": stream}
        )
        self.field = field
        self.unit = unit
        self.stream = stream


# ===================
# STREAM ERRORS
# ===================

class UnknownStreamLabelError(ValidationError):
    """Stream label is neither in the catalogue nor a project stream."""

    def __init__(self, stream: str):
        super().__init__(
            code="UNKNOWN_STREAM_LABEL",
            message=f"Unknown waste stream: {stream}",
            details={"stream": stream}
        )
        self.stream = stream


# ===================
# RECOMMENDATION ERRORS
# ===================

class UnresolvedTargetError(ConflictError):
    """Apply action points at a stream or facility that cannot be found or created."""

    def __init__(self, action_type: str, reason: str, stream: Optional[str] = None):
        super().__init__(
            code="UNRESOLVED_TARGET",
            message=f"Cannot apply {action_type}: {reason}",
            details={"action": action_type, "stream": stream}
        )
        self.action_type = action_type
        self.stream = stream


class UnsupportedActionError(ValidationError):
    """Apply action type is not one the engine knows how to execute."""

    def __init__(self, action_type: str):
        super().__init__(
            code="UNSUPPORTED_ACTION",
            message=f"Unsupported recommendation action: {action_type}",
            details={
                "action": action_type,
                "valid": ["mark_stream_separate", "set_facility", "set_outcome", "create_stream"]
            }
        )


class RecommendationNotActionableError(ConflictError):
    """Recommendation has no apply action."""

    def __init__(self, recommendation_id: str):
        super().__init__(
            code="RECOMMENDATION_NOT_ACTIONABLE",
            message="Recommendation has no apply action",
            details={"id": recommendation_id}
        )


class RecommendationNotFoundError(NotFoundError):
    """Recommendation not found for project."""

    def __init__(self, recommendation_id: str):
        super().__init__(
            resource="Recommendation",
            identifier=recommendation_id,
            code="RECOMMENDATION_NOT_FOUND"
        )


# ===================
# PROJECT ERRORS
# ===================

class ProjectNotFoundError(NotFoundError):
    """Project not found."""

    def __init__(self, project_id: str):
        super().__init__(
            resource="Project",
            identifier=project_id,
            code="PROJECT_NOT_FOUND"
        )

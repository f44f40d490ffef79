"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DatabaseError,

    # Conversion
    InvalidQuantityError,
    UnsupportedUnitError,
    MissingConversionDataError,

    # Streams
    UnknownStreamLabelError,

    # Recommendations
    UnresolvedTargetError,
    UnsupportedActionError,
    RecommendationNotActionableError,
    RecommendationNotFoundError,

    # Projects
    ProjectNotFoundError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DatabaseError",

    # Conversion
    "InvalidQuantityError",
    "UnsupportedUnitError",
    "MissingConversionDataError",

    # Streams
    "UnknownStreamLabelError",

    # Recommendations
    "UnresolvedTargetError",
    "UnsupportedActionError",
    "RecommendationNotActionableError",
    "RecommendationNotFoundError",

    # Projects
    "ProjectNotFoundError",
]

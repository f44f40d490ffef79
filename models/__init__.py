"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.catalogue import (
    MaterialDefault,
    MaterialListResponse,
)
from models.waste_stream import (
    HandlingMode,
    DestinationMode,
    WasteStreamPlan,
    StreamStatus,
)
from models.forecast import (
    ForecastItem,
    StreamTotal,
    AllocationSuggestion,
    ForecastSyncResult,
)
from models.diversion import (
    StreamTonnage,
    DiversionSummary,
    DiversionComputeRequest,
)
from models.facility import (
    Partner,
    Facility,
    FacilityDistance,
    FacilitySuggestion,
    FacilitySuggestions,
    StreamFacilityOptions,
    FacilityOptimiserResult,
    FacilityAssignment,
    FacilityAssignmentRequest,
    FacilityAssignmentResult,
)
from models.recommendation import (
    RecommendationPriority,
    RecommendationCategory,
    ApplyActionType,
    EstimatedImpact,
    ApplyAction,
    StrategyRecommendation,
    RecommendationWithStatus,
    RecommendationListResponse,
    ApplyRecommendationRequest,
    ApplyRecommendationResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    # Catalogue
    "MaterialDefault",
    "MaterialListResponse",
    # Streams
    "HandlingMode",
    "DestinationMode",
    "WasteStreamPlan",
    "StreamStatus",
    # Forecast
    "ForecastItem",
    "StreamTotal",
    "AllocationSuggestion",
    "ForecastSyncResult",
    # Diversion
    "StreamTonnage",
    "DiversionSummary",
    "DiversionComputeRequest",
    # Facilities
    "Partner",
    "Facility",
    "FacilityDistance",
    "FacilitySuggestion",
    "FacilitySuggestions",
    "StreamFacilityOptions",
    "FacilityOptimiserResult",
    "FacilityAssignment",
    "FacilityAssignmentRequest",
    "FacilityAssignmentResult",
    # Recommendations
    "RecommendationPriority",
    "RecommendationCategory",
    "ApplyActionType",
    "EstimatedImpact",
    "ApplyAction",
    "StrategyRecommendation",
    "RecommendationWithStatus",
    "RecommendationListResponse",
    "ApplyRecommendationRequest",
    "ApplyRecommendationResponse",
]

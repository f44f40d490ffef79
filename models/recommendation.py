"""
Strategy recommendation schemas.

Recommendations are generated elsewhere and stored per project. This
service only applies them and checks whether they are already satisfied.
Resolution is derived from the current plans, never stored.
"""

from pydantic import Field, field_validator, model_validator
from typing import Any, Optional
from enum import Enum

from models.base import BaseSchema
from models.diversion import DiversionSummary
from models.waste_stream import WasteStreamPlan


class RecommendationPriority(str, Enum):
    """Priority levels for strategy recommendations."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendationCategory(str, Enum):
    """What part of the plan a recommendation improves."""
    SEGREGATION = "segregation"
    FACILITY = "facility"
    OUTCOME = "outcome"
    STREAM = "stream"
    OTHER = "other"


class ApplyActionType(str, Enum):
    """Action types the engine can execute."""
    MARK_STREAM_SEPARATE = "mark_stream_separate"  # handling_mode -> separated
    SET_FACILITY = "set_facility"                  # destination facility for a stream
    SET_OUTCOME = "set_outcome"                    # fill unknown intended outcomes
    CREATE_STREAM = "create_stream"                # add a stream plan
    ALLOCATE_TO_MIXED = "allocate_to_mixed"        # unallocated forecast items -> Mixed C&D


class EstimatedImpact(BaseSchema):
    """Advisory impact figures. Never used in calculations."""

    diversion_pct_delta: Optional[float] = None
    tonnes_diverted: Optional[float] = None
    cost_delta: Optional[float] = None
    carbon_delta_kg: Optional[float] = None
    notes: Optional[str] = None


class ApplyAction(BaseSchema):
    """
    Machine-applicable action attached to a recommendation.

    type is kept as a plain string so unknown action types can be stored
    and reported instead of failing validation.
    """

    type: str = Field(..., min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("payload", mode="before")
    @classmethod
    def _payload_dict(cls, value):
        return value or {}

    @property
    def known_type(self) -> Optional[ApplyActionType]:
        try:
            return ApplyActionType(self.type)
        except ValueError:
            return None

    @property
    def stream(self) -> Optional[str]:
        """Target stream label from either payload spelling."""
        raw = self.payload.get("stream_name") or self.payload.get("stream")
        if raw is None:
            return None
        label = str(raw).strip()
        return label or None


class StrategyRecommendation(BaseSchema):
    """Stored strategy recommendation for a project."""

    id: str
    project_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    category: RecommendationCategory = RecommendationCategory.OTHER
    priority: RecommendationPriority = RecommendationPriority.MEDIUM
    confidence: Optional[float] = Field(None, ge=0, le=1)
    apply_action: Optional[ApplyAction] = None
    estimated_impact: Optional[EstimatedImpact] = None

    @field_validator("category", mode="before")
    @classmethod
    def _category_default(cls, value):
        try:
            return RecommendationCategory(value)
        except ValueError:
            return RecommendationCategory.OTHER

    @field_validator("priority", mode="before")
    @classmethod
    def _priority_default(cls, value):
        if isinstance(value, str):
            value = value.lower()
        try:
            return RecommendationPriority(value)
        except ValueError:
            return RecommendationPriority.MEDIUM


class RecommendationWithStatus(StrategyRecommendation):
    """Recommendation annotated with derived resolution status."""

    resolved: bool = False
    actionable: bool = Field(False, description="Has a known apply action")


class RecommendationListResponse(BaseSchema):
    """Recommendations for a project."""

    data: list[RecommendationWithStatus]
    total: int
    resolved_count: int


class ApplyRecommendationRequest(BaseSchema):
    """Apply a stored recommendation or an ad-hoc action."""

    recommendation_id: Optional[str] = None
    action: Optional[ApplyAction] = None

    @model_validator(mode="after")
    def _one_target(self):
        if not self.recommendation_id and self.action is None:
            raise ValueError("recommendation_id or action is required")
        return self


class ApplyRecommendationResponse(BaseSchema):
    """Result of applying an action to a project's plans."""

    project_id: str
    recommendation_id: Optional[str] = None
    action_type: str
    resolved: bool
    plans: list[WasteStreamPlan]
    diversion: DiversionSummary

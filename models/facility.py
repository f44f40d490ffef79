"""
Facility and partner schemas.

Partner (company) -> Facility (site). Each facility accepts a fixed set
of stream labels in one region.
"""

from pydantic import Field, field_validator
from typing import Optional

from models.base import BaseSchema
from models.waste_stream import WasteStreamPlan


class Partner(BaseSchema):
    """Waste contractor / processor company."""

    id: str
    name: str


class Facility(BaseSchema):
    """Disposal or recycling site."""

    id: str
    name: str
    facility_type: Optional[str] = None
    partner_id: Optional[str] = None
    region: str
    accepted_streams: list[str] = Field(default_factory=list)
    address: Optional[str] = None

    # Optional scoring inputs
    cost_per_tonne: Optional[float] = Field(None, description="Gate fee ($/t); lower is better")
    carbon_kg_co2e_per_tonne: Optional[float] = Field(None, description="Lower is better")
    diversion_rating: Optional[float] = Field(None, description="0-100; higher is better")

    @field_validator("accepted_streams", mode="before")
    @classmethod
    def _streams_list(cls, value):
        return value or []


class FacilityDistance(BaseSchema):
    """Cached route distance from the project site to a facility."""

    facility_id: str
    stream: Optional[str] = Field(None, description="None = applies to every stream")
    distance_km: float
    duration_min: Optional[float] = None


class FacilitySuggestion(BaseSchema):
    """One ranked facility for a stream."""

    facility_id: str
    facility_name: str
    partner_id: Optional[str] = None
    partner_name: Optional[str] = None
    region: str
    distance_km: Optional[float] = None
    duration_min: Optional[float] = None
    rank: int = Field(..., description="1 = best")
    score: Optional[float] = Field(None, description="0-1 weighted score; higher is better")


class FacilitySuggestions(BaseSchema):
    """Facility suggestions for a stream in a project."""

    stream: str
    region: Optional[str] = None
    partner_id: Optional[str] = None
    partner_fallback: bool = Field(
        False,
        description="True when the partner had no eligible facility and all partners were used"
    )
    assigned_facility_id: Optional[str] = None
    suggestions: list[FacilitySuggestion]


# ===================
# FACILITY OPTIMISER
# ===================

class StreamFacilityOptions(BaseSchema):
    """Assigned facility and nearest alternatives for one stream with tonnes."""

    stream: str
    total_tonnes: float
    assigned_facility_id: Optional[str] = None
    assigned_facility_name: Optional[str] = None
    assigned_distance_km: Optional[float] = None
    assigned_duration_min: Optional[float] = None
    recommended_facility_id: Optional[str] = Field(
        None,
        description="Best-scoring facility for the stream's partner, then any partner"
    )
    nearest: list[FacilitySuggestion] = Field(
        default_factory=list,
        description="Closest accepting facilities with a cached distance"
    )


class FacilityOptimiserResult(BaseSchema):
    """Facility options for every stream in a project that has tonnes."""

    project_id: str
    region: Optional[str] = None
    distances_cached: int = Field(..., description="Cached distance rows for the project")
    streams: list[StreamFacilityOptions]


class FacilityAssignment(BaseSchema):
    """One stream -> facility choice. Blank entries are ignored."""

    stream_name: str = ""
    facility_id: str = ""


class FacilityAssignmentRequest(BaseSchema):
    """Request body for applying facility choices in one go."""

    assignments: list[FacilityAssignment] = Field(..., min_length=1)


class FacilityAssignmentResult(BaseSchema):
    """Outcome of a batch facility assignment."""

    project_id: str
    applied: int
    skipped_streams: list[str] = Field(
        default_factory=list,
        description="Requested streams with no plan in the project"
    )
    plans: list[WasteStreamPlan]

"""
Forecast item schemas.

Forecast items are purchased/measured material lines. Waste generated
= quantity × excess_percent / 100, converted to kg for stream totals.
"""

from pydantic import Field, field_validator
from typing import Optional

from models.base import BaseSchema, lenient_float, lenient_str


class ForecastItem(BaseSchema):
    """A purchased or measured material line item."""

    id: str
    project_id: Optional[str] = None
    item_name: Optional[str] = None
    material_type: Optional[str] = Field(None, description="Material classification")

    quantity: float = Field(0, description="Purchased quantity in unit")
    unit: str = Field("tonne", description="Unit of quantity")
    excess_percent: float = Field(0, description="Share of quantity expected to become waste")

    waste_stream_key: Optional[str] = Field(None, description="Allocated stream; None = unallocated")

    # Conversion overrides
    density_kg_m3: Optional[float] = None
    thickness_m: Optional[float] = None
    kg_per_m: Optional[float] = None

    # Derived
    computed_waste_qty: Optional[float] = Field(None, description="Waste in entered unit")
    computed_waste_kg: Optional[float] = Field(None, description="None = needs conversion data")

    @field_validator("quantity", "excess_percent", mode="before")
    @classmethod
    def _number_or_zero(cls, value):
        number = lenient_float(value)
        return 0.0 if number is None else number

    @field_validator(
        "density_kg_m3", "thickness_m", "kg_per_m", "computed_waste_qty", "computed_waste_kg",
        mode="before"
    )
    @classmethod
    def _number_or_none(cls, value):
        return lenient_float(value)

    @field_validator("id", "item_name", "material_type", "project_id", mode="before")
    @classmethod
    def _text(cls, value):
        return lenient_str(value)

    @field_validator("waste_stream_key", mode="before")
    @classmethod
    def _blank_is_unallocated(cls, value):
        value = lenient_str(value)
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("unit", mode="before")
    @classmethod
    def _unit_default(cls, value):
        value = lenient_str(value)
        return value if value and value.strip() else "tonne"


class StreamTotal(BaseSchema):
    """Forecast tonnes for one stream."""

    stream_key: str
    total_tonnes: float


class AllocationSuggestion(BaseSchema):
    """Existing project stream an unallocated item's material type points to."""

    item_id: str
    material_type: str
    stream_key: str


class ForecastSyncResult(BaseSchema):
    """Result of a full forecast recompute for a project."""

    project_id: str
    stream_totals: list[StreamTotal]
    unallocated_count: int = Field(..., description="Items without a stream")
    conversion_required_count: int = Field(..., description="Allocated items missing density/thickness/kg per m")
    invalid_count: int = Field(..., description="Allocated items with unusable quantity or unit")
    included_count: int = Field(..., description="Items contributing to stream totals")
    allocation_suggestions: list[AllocationSuggestion] = Field(
        default_factory=list,
        description="Unallocated items whose material type matches a project stream"
    )

"""
Diversion summary schemas.
"""

from pydantic import Field
from typing import Optional

from models.base import BaseSchema
from models.waste_stream import WasteStreamPlan


class StreamTonnage(BaseSchema):
    """Tonnage of a stream that counted toward the totals."""

    category: str
    manual_tonnes: float
    forecast_tonnes: float
    total_tonnes: float
    outcome: Optional[str] = None


class DiversionSummary(BaseSchema):
    """
    Diversion and landfill avoidance for a set of stream plans.

    Percentages are 0 when total_tonnes is 0; use total_tonnes to tell
    "no tonnage yet" apart from "0% diversion".
    """

    total_tonnes: float = 0.0
    diverted_tonnes: float = Field(0.0, description="Reuse + Recycle")
    landfill_avoided_tonnes: float = Field(0.0, description="Reuse + Recycle + Cleanfill")
    diversion_pct: float = 0.0
    landfill_avoidance_pct: float = 0.0

    missing_thickness_streams: list[str] = Field(default_factory=list)
    missing_quantity_streams: list[str] = Field(default_factory=list)
    invalid_quantity_streams: list[str] = Field(default_factory=list)

    streams: list[StreamTonnage] = Field(default_factory=list)


class DiversionComputeRequest(BaseSchema):
    """Stream plans to summarise without touching a project."""

    plans: list[WasteStreamPlan] = Field(default_factory=list)

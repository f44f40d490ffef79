"""
Waste stream plan schemas.

A project holds one plan per stream label. Plans live in the
swmp_inputs.inputs JSON column, so unknown keys are kept on round-trip.
"""

from pydantic import ConfigDict, Field, field_validator, model_validator
from typing import Optional
from enum import Enum

from config.materials import INTENDED_OUTCOMES, LEGACY_OUTCOMES
from models.base import BaseSchema, lenient_float, lenient_str


class HandlingMode(str, Enum):
    """How a stream is handled on site."""
    MIXED = "mixed"          # Co-mingled in the general skip
    SEPARATED = "separated"  # Source-separated on site


class DestinationMode(str, Enum):
    """Where a stream's destination comes from."""
    FACILITY = "facility"  # Facility from the catalogue
    CUSTOM = "custom"      # Free-text destination with address


class WasteStreamPlan(BaseSchema):
    """Plan for a single waste stream within a project."""

    model_config = ConfigDict(extra="allow")

    category: str = Field(..., min_length=1, description="Stream label, unique per project")
    sub_material: Optional[str] = None

    # Manual quantity as entered
    manual_qty: Optional[float] = Field(None, description="Raw manual quantity")
    unit: Optional[str] = Field(None, description="Unit of manual_qty (t, kg, m3, m2, L)")
    density_kg_m3: Optional[float] = Field(None, description="Density override (kg/m³)")
    thickness_m: Optional[float] = Field(None, description="Thickness override for m2 (m)")

    # Derived tonnages
    manual_qty_tonnes: Optional[float] = Field(None, description="Cached manual conversion")
    forecast_qty_tonnes: Optional[float] = Field(
        None,
        description="Sum of allocated forecast items, recomputed in full"
    )

    intended_outcomes: list[str] = Field(
        default_factory=list,
        description="Ordered outcomes; the first is canonical"
    )
    handling_mode: HandlingMode = HandlingMode.MIXED

    # Destination
    destination_mode: Optional[DestinationMode] = None
    facility_id: Optional[str] = None
    custom_destination_name: Optional[str] = None
    custom_destination_address: Optional[str] = None
    partner_id: Optional[str] = Field(None, description="Partner scoping hint for suggestions")

    # Cached route data
    distance_km: Optional[float] = None
    duration_min: Optional[float] = None

    pathway: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_outcome_keys(cls, data):
        """Older plans stored outcomes under "outcomes" or "outcome"."""
        if isinstance(data, dict) and data.get("intended_outcomes") is None:
            legacy = data.get("outcomes")
            if legacy is None:
                legacy = data.get("outcome")
            if legacy is not None:
                data = {**data, "intended_outcomes": legacy}
        return data

    @field_validator("intended_outcomes", mode="before")
    @classmethod
    def _outcomes_list(cls, value):
        """Map legacy names and drop anything outside the outcome vocabulary."""
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            return []
        outcomes = []
        for raw in value:
            name = (lenient_str(raw) or "").strip()
            name = LEGACY_OUTCOMES.get(name, name)
            if name in INTENDED_OUTCOMES:
                outcomes.append(name)
        return outcomes

    @field_validator(
        "manual_qty", "density_kg_m3", "thickness_m", "manual_qty_tonnes",
        "forecast_qty_tonnes", "distance_km", "duration_min",
        mode="before"
    )
    @classmethod
    def _number_or_none(cls, value):
        return lenient_float(value)

    @field_validator(
        "sub_material", "unit", "facility_id", "custom_destination_name",
        "custom_destination_address", "partner_id", "pathway", "notes",
        mode="before"
    )
    @classmethod
    def _text(cls, value):
        return lenient_str(value)

    @field_validator("handling_mode", mode="before")
    @classmethod
    def _handling_mode_default(cls, value):
        if value in ("mixed", "separated", HandlingMode.MIXED, HandlingMode.SEPARATED):
            return value
        return HandlingMode.MIXED

    @field_validator("destination_mode", mode="before")
    @classmethod
    def _destination_mode_known(cls, value):
        if value in ("facility", "custom", DestinationMode.FACILITY, DestinationMode.CUSTOM):
            return value
        return None

    @property
    def facility_ref(self) -> Optional[str]:
        """Assigned facility id, or None when unset or blank."""
        if self.facility_id is None:
            return None
        ref = str(self.facility_id).strip()
        return ref or None

    @property
    def first_outcome(self) -> Optional[str]:
        """Canonical display outcome."""
        if not self.intended_outcomes:
            return None
        first = str(self.intended_outcomes[0]).strip()
        return first or None


class StreamStatus(BaseSchema):
    """Per-stream tonnage and completion status."""

    category: str
    manual_tonnes: Optional[float] = Field(None, description="None when conversion failed")
    forecast_tonnes: float
    total_tonnes: float
    handling_mode: HandlingMode
    intended_outcome: Optional[str] = None
    facility_id: Optional[str] = None
    distance_km: Optional[float] = None
    destination_set: bool
    complete: bool
    needs_attention: Optional[str] = Field(
        None,
        description="missing_thickness, missing_density, invalid_quantity or missing_quantity"
    )

"""Per-stream tonnage aggregation.

Manual and forecast tonnes are kept apart on every plan and only added
when read. forecast_qty_tonnes is always recomputed in full from the
current allocated items, so recomputing twice gives the same result.
"""

import math
from typing import Iterable, Optional
import structlog

from config.materials import MIXED_CD_KEY
from exceptions import (
    InvalidQuantityError,
    UnsupportedUnitError,
    MissingConversionDataError,
    UnknownStreamLabelError,
)
from models.forecast import ForecastItem
from models.waste_stream import (
    DestinationMode,
    HandlingMode,
    StreamStatus,
    WasteStreamPlan,
)
from services.catalogue_service import MaterialCatalogue, get_material_catalogue
from services.conversion_service import plan_manual_tonnes

logger = structlog.get_logger(__name__)

PATHWAY_TEMPLATE = "Segregate {category} where practical and send to an approved recycler/processor."


# ===================
# LOOKUP
# ===================

def find_plan(plans: Iterable[WasteStreamPlan], label: Optional[str]) -> Optional[WasteStreamPlan]:
    """Plan whose category equals the trimmed label, or None."""
    key = (label or "").strip()
    if not key:
        return None
    for plan in plans:
        if plan.category.strip() == key:
            return plan
    return None


def match_material_to_stream(
    material_type: Optional[str],
    existing_labels: Iterable[str],
    catalogue: Optional[MaterialCatalogue] = None,
) -> Optional[str]:
    """
    Stream an item of this material type belongs to in a project.

    An exact label match wins, then the first preferred stream that exists.
    None means unallocated.
    """
    catalogue = catalogue or get_material_catalogue()
    key = (material_type or "").strip()
    labels = {label.strip() for label in existing_labels if label}
    if not key or not labels:
        return None
    if key in labels:
        return key
    for candidate in catalogue.streams_for_material_type(key):
        if candidate in labels:
            return candidate
    return None


def suggested_stream_for_material(
    material_type: Optional[str],
    catalogue: Optional[MaterialCatalogue] = None,
) -> Optional[str]:
    """
    Stream label to offer for a material type, whether or not the project has it.

    Unmapped types suggest a stream named after themselves. Blank is None.
    """
    catalogue = catalogue or get_material_catalogue()
    key = (material_type or "").strip()
    if not key:
        return None
    candidates = catalogue.streams_for_material_type(key)
    return candidates[0] if candidates else key


# ===================
# FORECAST TOTALS
# ===================

def _usable_kg(value) -> Optional[float]:
    if value is None:
        return None
    try:
        kg = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(kg) or kg < 0:
        return None
    return kg


def compute_forecast_totals_by_stream(items: Iterable[ForecastItem]) -> dict[str, float]:
    """
    Forecast tonnes per stream key.

    Unallocated items and items without a usable computed_waste_kg are
    skipped.
    """
    kg_by_stream: dict[str, float] = {}
    for item in items:
        key = item.waste_stream_key
        kg = _usable_kg(item.computed_waste_kg)
        if not key or kg is None:
            continue
        kg_by_stream[key] = kg_by_stream.get(key, 0.0) + kg
    return {key: kg / 1000 for key, kg in kg_by_stream.items()}


def recompute_forecast_totals(
    plans: list[WasteStreamPlan],
    items: Iterable[ForecastItem],
) -> list[WasteStreamPlan]:
    """
    Overwrite every plan's forecast_qty_tonnes from the items.

    Plans with no allocated items get 0. Returns new plans; the input
    list is not modified.
    """
    totals = compute_forecast_totals_by_stream(items)
    return [
        plan.model_copy(update={
            "forecast_qty_tonnes": totals.get(plan.category.strip(), 0.0),
        })
        for plan in plans
    ]


# ===================
# STREAMS
# ===================

def build_new_plan(
    label: str,
    catalogue: Optional[MaterialCatalogue] = None,
) -> WasteStreamPlan:
    """Default plan for a newly added stream."""
    catalogue = catalogue or get_material_catalogue()
    category = label.strip()
    return WasteStreamPlan(
        category=category,
        unit=catalogue.default_unit_for(category),
        intended_outcomes=catalogue.default_outcomes_for(category),
        handling_mode=HandlingMode.MIXED,
        pathway=PATHWAY_TEMPLATE.format(category=category),
    )


def ensure_stream(
    plans: list[WasteStreamPlan],
    label: Optional[str],
    catalogue: Optional[MaterialCatalogue] = None,
    allow_custom: bool = True,
) -> list[WasteStreamPlan]:
    """
    Make sure a plan exists for the stream.

    Idempotent: an existing plan (trimmed exact match) leaves the list
    unchanged. A blank label is a no-op. With allow_custom=False, labels
    outside the catalogue raise UnknownStreamLabelError.

    Returns:
        New list of plans
    """
    catalogue = catalogue or get_material_catalogue()
    key = (label or "").strip()
    if not key or find_plan(plans, key) is not None:
        return list(plans)
    if not allow_custom and not catalogue.is_known(key):
        raise UnknownStreamLabelError(key)

    logger.info("stream_added", stream=key)
    return [*plans, build_new_plan(key, catalogue)]


def ensure_mixed_stream(
    plans: list[WasteStreamPlan],
    catalogue: Optional[MaterialCatalogue] = None,
) -> list[WasteStreamPlan]:
    """Make sure the Mixed C&D stream exists."""
    return ensure_stream(plans, MIXED_CD_KEY, catalogue)


# ===================
# MANUAL TONNES
# ===================

def refresh_manual_tonnes(
    plans: list[WasteStreamPlan],
    catalogue: Optional[MaterialCatalogue] = None,
) -> list[WasteStreamPlan]:
    """
    Recompute the cached manual_qty_tonnes from each plan's raw quantity.

    Plans whose quantity cannot be converted get None.
    """
    catalogue = catalogue or get_material_catalogue()
    refreshed = []
    for plan in plans:
        if plan.manual_qty is None:
            refreshed.append(plan)
            continue
        try:
            tonnes = plan_manual_tonnes(plan, catalogue)
        except (InvalidQuantityError, UnsupportedUnitError, MissingConversionDataError) as e:
            logger.debug("manual_tonnes_not_converted", stream=plan.category, reason=e.code)
            tonnes = None
        refreshed.append(plan.model_copy(update={"manual_qty_tonnes": tonnes}))
    return refreshed


def forecast_tonnes(plan: WasteStreamPlan) -> float:
    """Forecast tonnes, 0 when unset or unusable."""
    value = plan.forecast_qty_tonnes
    if value is None or not math.isfinite(value) or value < 0:
        return 0.0
    return value


# ===================
# COMPLETION
# ===================

def has_destination_set(plan: Optional[WasteStreamPlan]) -> bool:
    """Facility chosen, or a custom destination name/address given."""
    if plan is None:
        return False
    if plan.destination_mode == DestinationMode.CUSTOM:
        name = (plan.custom_destination_name or "").strip()
        address = (plan.custom_destination_address or "").strip()
        return bool(name or address)
    return plan.facility_ref is not None


def has_disposal_set(plan: Optional[WasteStreamPlan]) -> bool:
    return plan is not None and len(plan.intended_outcomes) > 0


def is_stream_complete(
    plan: Optional[WasteStreamPlan],
    require_tonnes: bool = False,
    catalogue: Optional[MaterialCatalogue] = None,
) -> bool:
    """Disposal and destination set, and tonnes > 0 when require_tonnes."""
    if not has_disposal_set(plan) or not has_destination_set(plan):
        return False
    if require_tonnes:
        manual, _reason = _manual_or_reason(plan, catalogue or get_material_catalogue())
        return (manual or 0.0) + forecast_tonnes(plan) > 0
    return True


def _manual_or_reason(
    plan: WasteStreamPlan,
    catalogue: MaterialCatalogue,
) -> tuple[Optional[float], Optional[str]]:
    try:
        return plan_manual_tonnes(plan, catalogue), None
    except MissingConversionDataError as e:
        return None, f"missing_{e.field}"
    except (InvalidQuantityError, UnsupportedUnitError):
        return None, "invalid_quantity"


def stream_statuses(
    plans: Iterable[WasteStreamPlan],
    catalogue: Optional[MaterialCatalogue] = None,
    require_tonnes: bool = False,
) -> list[StreamStatus]:
    """Per-stream manual/forecast/total tonnes with completion status."""
    catalogue = catalogue or get_material_catalogue()
    statuses = []
    for plan in plans:
        manual, reason = _manual_or_reason(plan, catalogue)
        forecast = forecast_tonnes(plan)
        total = (manual or 0.0) + forecast
        if reason is None and total <= 0:
            reason = "missing_quantity"

        destination_set = has_destination_set(plan)
        complete = has_disposal_set(plan) and destination_set
        if require_tonnes:
            complete = complete and total > 0

        statuses.append(StreamStatus(
            category=plan.category,
            manual_tonnes=manual,
            forecast_tonnes=forecast,
            total_tonnes=total,
            handling_mode=plan.handling_mode,
            intended_outcome=plan.first_outcome,
            facility_id=plan.facility_ref,
            distance_km=plan.distance_km,
            destination_set=destination_set,
            complete=complete,
            needs_attention=reason,
        ))
    return statuses


__all__ = [
    "PATHWAY_TEMPLATE",
    "find_plan",
    "match_material_to_stream",
    "suggested_stream_for_material",
    "compute_forecast_totals_by_stream",
    "recompute_forecast_totals",
    "build_new_plan",
    "ensure_stream",
    "ensure_mixed_stream",
    "refresh_manual_tonnes",
    "forecast_tonnes",
    "has_destination_set",
    "has_disposal_set",
    "is_stream_complete",
    "stream_statuses",
]

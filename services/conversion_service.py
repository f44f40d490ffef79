"""Unit conversion for waste quantities.

Converts plan quantities and forecast items to tonnes / kg:

    t       value
    kg      value / 1000
    m3      value × density / 1000
    L       (value / 1000) × density / 1000
    m2      value × thickness × density / 1000
    m       value × kg_per_m / 1000

Missing conversion data raises MissingConversionDataError; bad input
raises InvalidQuantityError or UnsupportedUnitError. Never returns 0 to
mean "unknown".
"""

import math
from typing import Optional
import structlog

from config.materials import (
    UNIT_ALIASES,
    UNIT_TONNE,
    UNIT_KG,
    UNIT_M3,
    UNIT_M2,
    UNIT_LITRE,
    UNIT_METRE,
)
from exceptions import (
    AppError,
    InvalidQuantityError,
    UnsupportedUnitError,
    MissingConversionDataError,
)
from models.forecast import ForecastItem
from models.waste_stream import WasteStreamPlan
from services.catalogue_service import MaterialCatalogue, get_material_catalogue

logger = structlog.get_logger(__name__)


def _positive(value) -> Optional[float]:
    """Value as float when finite and > 0, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def normalize_unit(unit: Optional[str], stream: Optional[str] = None) -> str:
    """
    Canonical unit for any accepted spelling.

    Raises:
        UnsupportedUnitError: If the unit is blank or unknown
    """
    if unit is None or not str(unit).strip():
        raise UnsupportedUnitError(unit, stream=stream)
    canonical = UNIT_ALIASES.get(str(unit).strip().lower())
    if canonical is None:
        raise UnsupportedUnitError(unit, stream=stream)
    return canonical


def validate_quantity(value, stream: Optional[str] = None) -> float:
    """
    Quantity as a float.

    Raises:
        InvalidQuantityError: If negative, NaN, infinite or not a number
    """
    if value is None or isinstance(value, bool):
        raise InvalidQuantityError(value, stream=stream)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidQuantityError(value, stream=stream)
    if not math.isfinite(number) or number < 0:
        raise InvalidQuantityError(value, stream=stream)
    return number


def resolve_density(
    stream: Optional[str],
    override=None,
    catalogue: Optional[MaterialCatalogue] = None,
    use_fallback: bool = True,
) -> Optional[float]:
    """
    Density for a stream: override, then catalogue, then the global fallback.

    Non-positive or non-finite overrides are ignored.
    """
    catalogue = catalogue or get_material_catalogue()
    density = _positive(override)
    if density is not None:
        return density
    density = catalogue.density_for(stream)
    if density is not None:
        return density
    return catalogue.fallback_density if use_fallback else None


def resolve_thickness(
    stream: Optional[str],
    override=None,
    catalogue: Optional[MaterialCatalogue] = None,
) -> Optional[float]:
    """Thickness for an area stream: override, then catalogue. No global fallback."""
    catalogue = catalogue or get_material_catalogue()
    thickness = _positive(override)
    if thickness is not None:
        return thickness
    return catalogue.thickness_for(stream)


def to_tonnes(
    value,
    unit: Optional[str],
    density: Optional[float] = None,
    thickness_m: Optional[float] = None,
    kg_per_m: Optional[float] = None,
    stream: Optional[str] = None,
) -> float:
    """
    Convert a quantity to tonnes.

    Args:
        value: Quantity in unit (>= 0)
        unit: t, kg, m3, m2, L or m (aliases accepted)
        density: kg/m³, required for m3, L and m2
        thickness_m: Required for m2
        kg_per_m: Required for m
        stream: Label used in error details only

    Returns:
        Tonnes (>= 0)

    Raises:
        InvalidQuantityError: Negative or non-finite value
        UnsupportedUnitError: Unknown unit
        MissingConversionDataError: Density, thickness or kg_per_m missing
    """
    qty = validate_quantity(value, stream=stream)
    canonical = normalize_unit(unit, stream=stream)

    if canonical == UNIT_TONNE:
        return qty
    if canonical == UNIT_KG:
        return qty / 1000

    if canonical == UNIT_METRE:
        factor = kg_per_m if kg_per_m is not None and math.isfinite(kg_per_m) and kg_per_m >= 0 else None
        if factor is None:
            raise MissingConversionDataError("kg_per_m", canonical, stream=stream)
        return qty * factor / 1000

    d = _positive(density)
    if canonical == UNIT_M2:
        t = _positive(thickness_m)
        if t is None:
            raise MissingConversionDataError("thickness", canonical, stream=stream)
        if d is None:
            raise MissingConversionDataError("density", canonical, stream=stream)
        return qty * t * d / 1000

    if d is None:
        raise MissingConversionDataError("density", canonical, stream=stream)
    if canonical == UNIT_M3:
        return qty * d / 1000
    if canonical == UNIT_LITRE:
        return (qty / 1000) * d / 1000

    raise UnsupportedUnitError(unit, stream=stream)


def plan_unit(plan: WasteStreamPlan, catalogue: Optional[MaterialCatalogue] = None) -> str:
    """Unit of a plan's manual quantity: its own, the catalogue default, then m3."""
    catalogue = catalogue or get_material_catalogue()
    if plan.unit:
        return plan.unit
    return catalogue.default_unit_for(plan.category) or UNIT_M3


def plan_manual_tonnes(
    plan: WasteStreamPlan,
    catalogue: Optional[MaterialCatalogue] = None,
) -> Optional[float]:
    """
    Manual tonnes for a plan.

    Converts the raw manual quantity with catalogue fallbacks. The cached
    manual_qty_tonnes is used only when no raw quantity is present.

    Returns:
        Tonnes, or None when the plan has no manual quantity

    Raises:
        InvalidQuantityError, UnsupportedUnitError, MissingConversionDataError
    """
    catalogue = catalogue or get_material_catalogue()

    if plan.manual_qty is None:
        if plan.manual_qty_tonnes is None:
            return None
        return validate_quantity(plan.manual_qty_tonnes, stream=plan.category)

    unit = normalize_unit(plan_unit(plan, catalogue), stream=plan.category)
    density = resolve_density(plan.category, plan.density_kg_m3, catalogue)
    thickness = (
        resolve_thickness(plan.category, plan.thickness_m, catalogue)
        if unit == UNIT_M2 else None
    )
    return to_tonnes(
        plan.manual_qty,
        unit,
        density=density,
        thickness_m=thickness,
        stream=plan.category,
    )


def calc_waste_qty(quantity, excess_percent) -> float:
    """Waste generated in the item's own unit: quantity × excess% / 100."""
    try:
        qty = float(quantity)
        pct = float(excess_percent)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(qty) or not math.isfinite(pct):
        return 0.0
    return qty * (pct / 100)


def to_waste_kg(
    waste_qty,
    unit: Optional[str],
    density: Optional[float] = None,
    thickness_m: Optional[float] = None,
    kg_per_m: Optional[float] = None,
    stream: Optional[str] = None,
) -> float:
    """Waste quantity in kg. Same rules and errors as to_tonnes."""
    canonical = normalize_unit(unit, stream=stream)
    qty = validate_quantity(waste_qty, stream=stream)
    if canonical == UNIT_KG:
        return qty
    if canonical == UNIT_TONNE:
        return qty * 1000
    return to_tonnes(
        qty,
        canonical,
        density=density,
        thickness_m=thickness_m,
        kg_per_m=kg_per_m,
        stream=stream,
    ) * 1000


def convert_forecast_item(
    item: ForecastItem,
    catalogue: Optional[MaterialCatalogue] = None,
) -> tuple[ForecastItem, Optional[AppError]]:
    """
    Compute waste quantity and kg for a forecast item.

    Density and thickness come from the item, then the catalogue entry of
    its allocated stream. There is no global density fallback for items.

    Returns:
        (new item with computed_waste_qty / computed_waste_kg set,
         conversion error or None). computed_waste_kg is None on error.
    """
    catalogue = catalogue or get_material_catalogue()
    stream = item.waste_stream_key
    waste_qty = calc_waste_qty(item.quantity, item.excess_percent)

    try:
        waste_kg = to_waste_kg(
            waste_qty,
            item.unit,
            density=resolve_density(stream, item.density_kg_m3, catalogue, use_fallback=False),
            thickness_m=resolve_thickness(stream, item.thickness_m, catalogue),
            kg_per_m=item.kg_per_m,
            stream=stream,
        )
        error = None
    except (InvalidQuantityError, UnsupportedUnitError, MissingConversionDataError) as e:
        waste_kg = None
        error = e
        logger.debug(
            "forecast_item_not_converted",
            item_id=item.id,
            stream=stream,
            unit=item.unit,
            reason=e.code,
        )

    converted = item.model_copy(update={
        "computed_waste_qty": waste_qty,
        "computed_waste_kg": waste_kg,
    })
    return converted, error

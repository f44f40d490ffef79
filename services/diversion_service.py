"""Diversion and landfill avoidance statistics.

Only the first intended outcome of a stream counts:
    diversion          Reuse, Recycle
    landfill avoidance Reuse, Recycle, Cleanfill
"""

from typing import Iterable, Optional
import structlog

from config.materials import DIVERSION_OUTCOMES, LANDFILL_AVOIDANCE_OUTCOMES
from exceptions import (
    InvalidQuantityError,
    UnsupportedUnitError,
    MissingConversionDataError,
)
from models.diversion import DiversionSummary, StreamTonnage
from models.waste_stream import WasteStreamPlan
from services.catalogue_service import MaterialCatalogue, get_material_catalogue
from services.conversion_service import plan_manual_tonnes
from services.stream_service import forecast_tonnes

logger = structlog.get_logger(__name__)


def _pct(part: float, total: float) -> float:
    return (part / total) * 100 if total > 0 else 0.0


def compute_diversion(
    plans: Iterable[WasteStreamPlan],
    catalogue: Optional[MaterialCatalogue] = None,
) -> DiversionSummary:
    """
    Diversion summary for a set of stream plans.

    A stream counts only when its total (manual + forecast) is > 0.
    Streams that cannot be converted are listed and left out of every
    total:
        missing_thickness_streams  area quantity with no thickness
        invalid_quantity_streams   negative/non-finite quantity or bad unit
    Streams with no tonnage are listed in missing_quantity_streams.
    """
    catalogue = catalogue or get_material_catalogue()
    summary = DiversionSummary()

    total = diverted = avoided = 0.0

    for plan in plans:
        try:
            manual = plan_manual_tonnes(plan, catalogue)
        except MissingConversionDataError as e:
            if e.field == "thickness":
                summary.missing_thickness_streams.append(plan.category)
            else:
                summary.invalid_quantity_streams.append(plan.category)
            continue
        except (InvalidQuantityError, UnsupportedUnitError):
            summary.invalid_quantity_streams.append(plan.category)
            continue

        forecast = forecast_tonnes(plan)
        tonnes = (manual or 0.0) + forecast
        if tonnes <= 0:
            summary.missing_quantity_streams.append(plan.category)
            continue

        outcome = plan.first_outcome
        total += tonnes
        if outcome in DIVERSION_OUTCOMES:
            diverted += tonnes
        if outcome in LANDFILL_AVOIDANCE_OUTCOMES:
            avoided += tonnes

        summary.streams.append(StreamTonnage(
            category=plan.category,
            manual_tonnes=manual or 0.0,
            forecast_tonnes=forecast,
            total_tonnes=tonnes,
            outcome=outcome,
        ))

    summary.total_tonnes = total
    summary.diverted_tonnes = diverted
    summary.landfill_avoided_tonnes = avoided
    summary.diversion_pct = _pct(diverted, total)
    summary.landfill_avoidance_pct = _pct(avoided, total)

    logger.debug(
        "diversion_computed",
        streams=len(summary.streams),
        total_tonnes=round(total, 3),
        diversion_pct=round(summary.diversion_pct, 1),
        missing_thickness=len(summary.missing_thickness_streams),
    )
    return summary

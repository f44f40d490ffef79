"""
Project waste plan API routes.

Forecast recompute, diversion, stream status, facility suggestions, the
facility optimiser and strategy recommendations for a project.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.diversion import DiversionComputeRequest, DiversionSummary
from models.facility import (
    FacilityAssignmentRequest,
    FacilityAssignmentResult,
    FacilityOptimiserResult,
    FacilitySuggestions,
)
from models.forecast import ForecastSyncResult
from models.recommendation import (
    ApplyRecommendationRequest,
    ApplyRecommendationResponse,
    RecommendationListResponse,
)
from models.waste_stream import StreamStatus
from services.waste_plan_service import get_waste_plan_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/projects", tags=["Projects"])
diversion_router = APIRouter(prefix="/api/diversion", tags=["Diversion"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# FORECAST
# ===================

@router.post("/{project_id}/forecast/recompute", response_model=ForecastSyncResult)
async def recompute_forecast(project_id: str):
    """
    Recompute forecast tonnes for every stream in the project.

    Overwrites forecast_qty_tonnes on all plans (0 when a stream has no
    allocated items) and returns per-stream totals with item counts.
    """
    try:
        service = get_waste_plan_service()
        return service.recompute_forecast_totals(project_id)
    except Exception as e:
        return handle_error(e)


# ===================
# DIVERSION / STREAMS
# ===================

@router.get("/{project_id}/diversion", response_model=DiversionSummary)
async def get_project_diversion(project_id: str):
    """Diversion and landfill avoidance for the project's current plans."""
    try:
        service = get_waste_plan_service()
        return service.get_diversion_summary(project_id)
    except Exception as e:
        return handle_error(e)


@router.get("/{project_id}/streams", response_model=list[StreamStatus])
async def get_project_streams(
    project_id: str,
    require_tonnes: bool = Query(False, description="Complete only when total tonnes > 0")
):
    """Per-stream tonnage and completion status."""
    try:
        service = get_waste_plan_service()
        return service.get_stream_statuses(project_id, require_tonnes=require_tonnes)
    except Exception as e:
        return handle_error(e)


@diversion_router.post("/compute", response_model=DiversionSummary)
async def compute_diversion(request: DiversionComputeRequest):
    """Diversion for plans in the request body. Nothing is stored."""
    try:
        service = get_waste_plan_service()
        return service.compute_diversion_summary(request.plans)
    except Exception as e:
        return handle_error(e)


# ===================
# FACILITIES
# ===================

@router.get("/{project_id}/facility-suggestions", response_model=FacilitySuggestions)
async def get_facility_suggestions(
    project_id: str,
    stream: str = Query(..., min_length=1, description="Stream label"),
    partner_id: Optional[str] = Query(None, description="Limit to a partner's facilities")
):
    """
    Ranked facilities for a stream in the project's region.

    Falls back to all partners when the partner has none for the stream.
    """
    try:
        service = get_waste_plan_service()
        return service.suggest_facilities(project_id, stream, partner_id=partner_id)
    except Exception as e:
        return handle_error(e)


@router.get("/{project_id}/facility-optimiser", response_model=FacilityOptimiserResult)
async def get_facility_optimiser(
    project_id: str,
    limit: int = Query(3, ge=1, le=10, description="Nearest facilities per stream")
):
    """
    Assigned and nearest facilities for every stream with tonnes.

    Only facilities with a cached distance are listed as nearest.
    """
    try:
        service = get_waste_plan_service()
        return service.optimise_facilities(project_id, limit=limit)
    except Exception as e:
        return handle_error(e)


@router.post("/{project_id}/facility-optimiser/apply", response_model=FacilityAssignmentResult)
async def apply_facility_assignments(project_id: str, request: FacilityAssignmentRequest):
    """
    Set facilities on existing streams in one write.

    Body: {"assignments": [{"stream_name": "...", "facility_id": "..."}]}
    """
    try:
        service = get_waste_plan_service()
        return service.apply_facility_assignments(project_id, request.assignments)
    except Exception as e:
        return handle_error(e)


# ===================
# RECOMMENDATIONS
# ===================

@router.get("/{project_id}/recommendations", response_model=RecommendationListResponse)
async def list_recommendations(
    project_id: str,
    include_resolved: bool = Query(True, description="Include recommendations already satisfied")
):
    """Stored recommendations with resolved status."""
    try:
        service = get_waste_plan_service()
        return service.list_recommendations(project_id, include_resolved=include_resolved)
    except Exception as e:
        return handle_error(e)


@router.post("/{project_id}/recommendations/apply", response_model=ApplyRecommendationResponse)
async def apply_recommendation(project_id: str, request: ApplyRecommendationRequest):
    """
    Apply a stored recommendation or an ad-hoc action.

    Body: {"recommendation_id": "..."} or {"action": {"type": "...", "payload": {...}}}
    """
    try:
        service = get_waste_plan_service()
        if request.recommendation_id:
            return service.apply_recommendation(project_id, request.recommendation_id)
        return service.apply_action(project_id, request.action)
    except Exception as e:
        return handle_error(e)

"""
Catalogue API routes.

Read-only listings of waste materials, facilities and partners.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from models.catalogue import MaterialListResponse
from models.facility import Facility, Partner
from services.catalogue_service import get_material_catalogue
from services.waste_plan_service import get_waste_plan_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/catalog", tags=["Catalog"])


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
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


@router.get("/materials", response_model=MaterialListResponse)
async def list_materials():
    """Waste stream labels with conversion defaults."""
    catalogue = get_material_catalogue()
    materials = catalogue.all()
    return MaterialListResponse(data=materials, total=len(materials))


@router.get("/facilities", response_model=list[Facility])
async def list_facilities(
    region: Optional[str] = Query(None, description="Region (case-insensitive)"),
    stream: Optional[str] = Query(None, description="Accepted stream label"),
    partner_id: Optional[str] = Query(None, description="Owning partner")
):
    """Facilities, optionally filtered."""
    try:
        service = get_waste_plan_service()
        return service.list_facilities(region=region, stream=stream, partner_id=partner_id)
    except Exception as e:
        return handle_error(e)


@router.get("/partners", response_model=list[Partner])
async def list_partners():
    """Waste partners sorted by name."""
    try:
        service = get_waste_plan_service()
        return service.list_partners()
    except Exception as e:
        return handle_error(e)

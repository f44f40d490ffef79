"""
Business logic services.

Catalogue, conversion, stream, diversion and facility logic are pure and
work on in-memory plans; WastePlanService loads and saves project data.
"""

from services.catalogue_service import MaterialCatalogue, get_material_catalogue
from services.diversion_service import compute_diversion
from services.facility_service import DistanceTable, FacilityResolver
from services.recommendation_service import RecommendationService, get_recommendation_service
from services.waste_plan_service import WastePlanService, get_waste_plan_service

__all__ = [
    "MaterialCatalogue",
    "get_material_catalogue",
    "compute_diversion",
    "DistanceTable",
    "FacilityResolver",
    "RecommendationService",
    "get_recommendation_service",
    "WastePlanService",
    "get_waste_plan_service",
]

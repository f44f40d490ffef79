"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.projects import router as projects_router
from routes.projects import diversion_router
from routes.catalog import router as catalog_router

__all__ = [
    "projects_router",
    "diversion_router",
    "catalog_router",
]

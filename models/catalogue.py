"""
Material catalogue schemas.
"""

from typing import Optional
from pydantic import ConfigDict, Field

from models.base import BaseSchema


class MaterialDefault(BaseSchema):
    """Conversion defaults for one waste stream label. Immutable."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="Exact stream label")
    density_kg_m3: float = Field(..., gt=0, description="Bulk density (kg/m³)")
    default_unit: str = Field(..., description="Unit quantities are usually entered in")
    default_thickness_m: Optional[float] = Field(
        None,
        gt=0,
        description="Default thickness for area units (m)"
    )


class MaterialListResponse(BaseSchema):
    """Catalogue listing."""

    data: list[MaterialDefault]
    total: int

"""
Material catalogue service.

Read-only lookup of per-stream conversion defaults and default intended
outcomes. Engines take a catalogue argument so tests can pass their own.
"""

from types import MappingProxyType
from typing import Iterable, Mapping, Optional
import structlog

from config.materials import (
    STREAM_DEFAULTS,
    MATERIAL_TYPE_TO_STREAM_KEYS,
    DEFAULT_OUTCOME_RULES,
    DEFAULT_OUTCOMES,
    DEFAULT_DENSITY_KG_M3,
)
from models.catalogue import MaterialDefault

logger = structlog.get_logger(__name__)


class MaterialCatalogue:
    """
    Immutable waste material catalogue.

    Labels are matched exactly. A label missing from the catalogue is not
    an error: lookups return None and callers apply their own fallback.
    """

    def __init__(
        self,
        materials: Iterable[MaterialDefault],
        material_type_streams: Optional[Mapping[str, list[str]]] = None,
        outcome_rules: Optional[list] = None,
        fallback_density: float = DEFAULT_DENSITY_KG_M3,
    ):
        self._materials = MappingProxyType({m.label: m for m in materials})
        self._material_type_streams = MappingProxyType({
            k: tuple(v) for k, v in (material_type_streams or {}).items()
        })
        self._outcome_rules = tuple(
            (tuple(keywords), tuple(outcomes))
            for keywords, outcomes in (outcome_rules or [])
        )
        self.fallback_density = fallback_density

    @classmethod
    def from_defaults(cls) -> "MaterialCatalogue":
        """Build the catalogue from config.materials."""
        materials = [
            MaterialDefault(
                label=label,
                density_kg_m3=density,
                default_unit=unit,
                default_thickness_m=thickness,
            )
            for label, (density, unit, thickness) in STREAM_DEFAULTS.items()
        ]
        return cls(
            materials,
            material_type_streams=MATERIAL_TYPE_TO_STREAM_KEYS,
            outcome_rules=DEFAULT_OUTCOME_RULES,
        )

    def __len__(self) -> int:
        return len(self._materials)

    def __contains__(self, label) -> bool:
        return self.is_known(label)

    @property
    def labels(self) -> list[str]:
        return list(self._materials.keys())

    def all(self) -> list[MaterialDefault]:
        return list(self._materials.values())

    def get(self, label: Optional[str]) -> Optional[MaterialDefault]:
        if label is None:
            return None
        return self._materials.get(label.strip())

    def is_known(self, label: Optional[str]) -> bool:
        return self.get(label) is not None

    def density_for(self, label: Optional[str]) -> Optional[float]:
        """Catalogue density for a stream, None when not catalogued."""
        material = self.get(label)
        return material.density_kg_m3 if material else None

    def default_unit_for(self, label: Optional[str]) -> Optional[str]:
        material = self.get(label)
        return material.default_unit if material else None

    def thickness_for(self, label: Optional[str]) -> Optional[float]:
        """Catalogue thickness for area streams, None otherwise."""
        material = self.get(label)
        return material.default_thickness_m if material else None

    def streams_for_material_type(self, material_type: Optional[str]) -> tuple[str, ...]:
        """Preferred stream labels for a material type, in priority order."""
        if not material_type:
            return ()
        return self._material_type_streams.get(material_type.strip(), ())

    def default_outcomes_for(self, label: Optional[str]) -> list[str]:
        """
        Default intended outcomes for a new stream.

        First rule whose keywords all appear in the lowercased label wins.
        """
        name = (label or "").strip().lower()
        for keywords, outcomes in self._outcome_rules:
            if all(k in name for k in keywords):
                return list(outcomes)
        return list(DEFAULT_OUTCOMES)


# Singleton instance
_material_catalogue: Optional[MaterialCatalogue] = None


def get_material_catalogue() -> MaterialCatalogue:
    """Get or create the default material catalogue."""
    global _material_catalogue
    if _material_catalogue is None:
        _material_catalogue = MaterialCatalogue.from_defaults()
        logger.debug("material_catalogue_loaded", materials=len(_material_catalogue))
    return _material_catalogue

"""
Facility and partner resolution.

Filters the facility catalogue by region, stream and partner, orders
candidates by cached travel distance and, optionally, weighted scoring
over distance, gate fee, carbon and diversion rating.

Distances are a read-only snapshot loaded per request. This module never
computes routes.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional
import structlog

from config import settings
from models.facility import (
    Facility,
    FacilityDistance,
    FacilitySuggestion,
    FacilitySuggestions,
    Partner,
)

logger = structlog.get_logger(__name__)


def normalize_facility_id(facility_id) -> str:
    return str(facility_id or "").strip().lower()


def _finite(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class DistanceTable:
    """
    Cached project -> facility distances.

    Keyed by (stream, facility id). Rows without a stream apply to every
    stream and are used when no stream-specific row exists.
    """

    def __init__(self, distances: Iterable[FacilityDistance] = ()):
        self._rows: dict[tuple[Optional[str], str], FacilityDistance] = {}
        for row in distances:
            stream = row.stream.strip() if row.stream else None
            self._rows[(stream or None, normalize_facility_id(row.facility_id))] = row

    @classmethod
    def from_rows(cls, rows: Iterable[dict]) -> "DistanceTable":
        """
        Build from project_facility_distances rows.

        distance_m -> km (2 dp), duration_s -> minutes (1 dp). Rows
        without a usable distance are skipped.
        """
        distances = []
        for row in rows:
            facility_id = normalize_facility_id(row.get("facility_id"))
            meters = _finite(row.get("distance_m"))
            if not facility_id or meters is None or meters < 0:
                continue
            seconds = _finite(row.get("duration_s"))
            distances.append(FacilityDistance(
                facility_id=facility_id,
                stream=row.get("stream") or None,
                distance_km=round(meters / 1000, 2),
                duration_min=round(seconds / 60, 1) if seconds is not None else None,
            ))
        return cls(distances)

    def __len__(self) -> int:
        return len(self._rows)

    def lookup(self, stream: Optional[str], facility_id: str) -> Optional[FacilityDistance]:
        fid = normalize_facility_id(facility_id)
        key_stream = (stream or "").strip() or None
        if key_stream is not None:
            row = self._rows.get((key_stream, fid))
            if row is not None:
                return row
        return self._rows.get((None, fid))

    def distance_km(self, stream: Optional[str], facility_id: str) -> Optional[float]:
        row = self.lookup(stream, facility_id)
        return row.distance_km if row else None


@dataclass
class ScoredFacility:
    """Facility with its weighted score (0-1, higher is better)."""

    facility: Facility
    score: float
    distance_km: Optional[float] = None
    used_distance: bool = False
    used_cost: bool = False
    used_carbon: bool = False
    used_diversion: bool = False


def _normalise(values: list[Optional[float]], higher_is_better: bool) -> dict[int, float]:
    valid = [v for v in values if v is not None]
    if not valid:
        return {}
    low, high = min(valid), max(valid)
    spread = high - low
    result = {}
    for i, v in enumerate(values):
        if v is None:
            continue
        if spread <= 0:
            result[i] = 1.0
        elif higher_is_better:
            result[i] = (v - low) / spread
        else:
            result[i] = (high - v) / spread
    return result


def score_candidates(
    candidates: list[Facility],
    distances: Optional[dict[str, Optional[float]]] = None,
    distance_weight: Optional[float] = None,
    cost_weight: Optional[float] = None,
    carbon_weight: Optional[float] = None,
    diversion_weight: Optional[float] = None,
) -> list[ScoredFacility]:
    """
    Weighted, normalised score per candidate (input order kept).

    Each dimension is normalised to 0-1 across the candidates. Dimensions
    with no data or zero weight are dropped; when nothing remains but
    distance data exists, distance alone is used.

    Args:
        candidates: Facilities to score
        distances: facility id -> km (None = unknown)
        *_weight: Defaults come from settings
    """
    if not candidates:
        return []

    weights = {
        "distance": settings.facility_distance_weight if distance_weight is None else distance_weight,
        "cost": settings.facility_cost_weight if cost_weight is None else cost_weight,
        "carbon": settings.facility_carbon_weight if carbon_weight is None else carbon_weight,
        "diversion": settings.facility_diversion_weight if diversion_weight is None else diversion_weight,
    }
    distances = distances or {}

    columns = {
        "distance": [_finite(distances.get(f.id)) for f in candidates],
        "cost": [_finite(f.cost_per_tonne) for f in candidates],
        "carbon": [_finite(f.carbon_kg_co2e_per_tonne) for f in candidates],
        "diversion": [_finite(f.diversion_rating) for f in candidates],
    }
    normalised = {
        name: _normalise(values, higher_is_better=(name == "diversion"))
        for name, values in columns.items()
    }

    effective = {
        name: weight if weight > 0 and normalised[name] else 0
        for name, weight in weights.items()
    }
    if sum(effective.values()) == 0 and normalised["distance"]:
        effective = {"distance": 1, "cost": 0, "carbon": 0, "diversion": 0}
    total_weight = sum(effective.values()) or 1

    scored = []
    for i, facility in enumerate(candidates):
        score = 0.0
        used = {}
        for name, weight in effective.items():
            value = normalised[name].get(i)
            used[name] = weight > 0 and value is not None
            if used[name]:
                score += value * weight
        scored.append(ScoredFacility(
            facility=facility,
            score=score / total_weight,
            distance_km=columns["distance"][i],
            used_distance=used["distance"],
            used_cost=used["cost"],
            used_carbon=used["carbon"],
            used_diversion=used["diversion"],
        ))
    return scored


def nearest_facilities(
    stream: Optional[str],
    candidates: Iterable[Facility],
    distances: DistanceTable,
    include_missing: bool = True,
) -> list[tuple[Facility, Optional[FacilityDistance]]]:
    """
    Candidates ordered by ascending cached distance.

    Ties are broken by facility id. Facilities without a distance go last
    in id order, or are dropped when include_missing is False.
    """
    known = []
    missing = []
    for facility in candidates:
        row = distances.lookup(stream, facility.id)
        if row is None:
            missing.append((facility, None))
        else:
            known.append((facility, row))

    known.sort(key=lambda pair: (pair[1].distance_km, pair[0].id))
    if not include_missing:
        return known
    missing.sort(key=lambda pair: pair[0].id)
    return known + missing


class FacilityResolver:
    """
    Facility catalogue lookups for one request.

    Holds the facility and partner lists as loaded; never queries.
    """

    def __init__(self, facilities: Iterable[Facility], partners: Iterable[Partner] = ()):
        self.facilities = list(facilities)
        self.partners = {p.id: p for p in partners}
        self._by_id = {normalize_facility_id(f.id): f for f in self.facilities}

    def get_facility(self, facility_id: Optional[str]) -> Optional[Facility]:
        if not facility_id:
            return None
        return self._by_id.get(normalize_facility_id(facility_id))

    def get_partner(self, partner_id: Optional[str]) -> Optional[Partner]:
        if not partner_id:
            return None
        return self.partners.get(partner_id)

    def facilities_for(
        self,
        partner_id: Optional[str],
        region: Optional[str],
        stream: Optional[str],
    ) -> list[Facility]:
        """
        Facilities in a region that accept a stream.

        Region matches trimmed and case-insensitive, stream matches exactly.
        The partner filter is applied last and skipped when partner_id is
        empty.
        """
        region_key = (region or "").strip().lower()
        stream_key = (stream or "").strip()
        if not region_key or not stream_key:
            return []

        result = [
            f for f in self.facilities
            if f.region.strip().lower() == region_key and stream_key in f.accepted_streams
        ]
        if partner_id:
            result = [f for f in result if f.partner_id == partner_id]
        return result

    def rank(
        self,
        stream: str,
        candidates: list[Facility],
        distances: DistanceTable,
        include_missing: bool = True,
    ) -> list[ScoredFacility]:
        """Score candidates and order best first (score, distance, id)."""
        ordered = nearest_facilities(stream, candidates, distances, include_missing)
        facilities = [f for f, _row in ordered]
        km = {f.id: (row.distance_km if row else None) for f, row in ordered}
        scored = score_candidates(facilities, km)
        scored.sort(key=lambda s: (
            -s.score,
            s.distance_km if s.distance_km is not None else math.inf,
            s.facility.id,
        ))
        return scored

    def pick_best_facility(
        self,
        stream: str,
        region: Optional[str],
        existing_facility_id: Optional[str] = None,
        partner_id: Optional[str] = None,
        distances: Optional[DistanceTable] = None,
    ) -> Optional[Facility]:
        """
        Best facility for a stream.

        An already assigned facility is kept if it accepts the stream.
        Falls back to every partner when the given partner has none.
        """
        existing = self.get_facility(existing_facility_id)
        if existing is not None and stream.strip() in existing.accepted_streams:
            return existing

        candidates = self.facilities_for(partner_id, region, stream)
        if not candidates and partner_id:
            candidates = self.facilities_for(None, region, stream)
        if not candidates:
            return None
        ranked = self.rank(stream, candidates, distances or DistanceTable())
        return ranked[0].facility

    def suggest(
        self,
        stream: str,
        region: Optional[str],
        partner_id: Optional[str] = None,
        distances: Optional[DistanceTable] = None,
        assigned_facility_id: Optional[str] = None,
        include_missing: Optional[bool] = None,
    ) -> FacilitySuggestions:
        """
        Ranked facility suggestions for a stream.

        When the partner has no eligible facility, every partner in the
        region is used and partner_fallback is set.
        """
        distances = distances or DistanceTable()
        if include_missing is None:
            include_missing = settings.include_unranked_facilities

        candidates = self.facilities_for(partner_id, region, stream)
        fallback = False
        if not candidates and partner_id:
            candidates = self.facilities_for(None, region, stream)
            fallback = bool(candidates)
            if fallback:
                logger.info(
                    "facility_partner_fallback",
                    stream=stream,
                    partner_id=partner_id,
                    region=region,
                )

        ranked = self.rank(stream, candidates, distances, include_missing)
        suggestions = []
        for position, scored in enumerate(ranked, start=1):
            facility = scored.facility
            row = distances.lookup(stream, facility.id)
            partner = self.get_partner(facility.partner_id)
            used_any = scored.used_distance or scored.used_cost or scored.used_carbon or scored.used_diversion
            suggestions.append(FacilitySuggestion(
                facility_id=facility.id,
                facility_name=facility.name,
                partner_id=facility.partner_id,
                partner_name=partner.name if partner else None,
                region=facility.region,
                distance_km=row.distance_km if row else None,
                duration_min=row.duration_min if row else None,
                rank=position,
                score=round(scored.score, 4) if used_any else None,
            ))

        logger.debug(
            "facility_suggestions_built",
            stream=stream,
            region=region,
            candidates=len(candidates),
            suggestions=len(suggestions),
        )
        return FacilitySuggestions(
            stream=stream,
            region=region,
            partner_id=partner_id,
            partner_fallback=fallback,
            assigned_facility_id=assigned_facility_id,
            suggestions=suggestions,
        )

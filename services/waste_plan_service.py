"""
Waste plan service.

Loads a project's stream plans, forecast items, facilities and cached
distances from Supabase, runs the pure engines and writes results back.

Tables:
    projects                          region, primary_waste_contractor_partner_id
    swmp_inputs                       inputs JSON (waste_streams, waste_stream_plans); newest row wins
    project_forecast_items            purchased material lines
    facilities / partners             facility catalogue
    project_facility_distances        cached routes (distance_m, duration_s)
    project_strategy_recommendations  stored recommendations
"""

from typing import Optional
import structlog
from pydantic import ValidationError as PydanticValidationError

from config import get_supabase_client
from config.materials import MIXED_CD_KEY
from exceptions import (
    AppError,
    DatabaseError,
    InvalidQuantityError,
    UnsupportedUnitError,
    MissingConversionDataError,
    NotFoundError,
    ProjectNotFoundError,
    RecommendationNotActionableError,
    RecommendationNotFoundError,
    ValidationError,
)
from models.diversion import DiversionSummary
from models.facility import (
    Facility,
    FacilityAssignment,
    FacilityAssignmentResult,
    FacilityOptimiserResult,
    FacilitySuggestion,
    FacilitySuggestions,
    Partner,
    StreamFacilityOptions,
)
from models.forecast import AllocationSuggestion, ForecastItem, ForecastSyncResult, StreamTotal
from models.recommendation import (
    ApplyAction,
    ApplyActionType,
    ApplyRecommendationResponse,
    RecommendationListResponse,
    StrategyRecommendation,
)
from models.waste_stream import StreamStatus, WasteStreamPlan
from services.catalogue_service import get_material_catalogue
from services.conversion_service import convert_forecast_item
from services.diversion_service import compute_diversion
from services.facility_service import DistanceTable, FacilityResolver, nearest_facilities
from services.recommendation_service import get_recommendation_service
from services.stream_service import (
    compute_forecast_totals_by_stream,
    find_plan,
    match_material_to_stream,
    recompute_forecast_totals,
    stream_statuses,
)

logger = structlog.get_logger(__name__)

INPUTS_COLUMN = "inputs"


class WastePlanService:
    """
    Project-level waste plan operations.

    Single writer per call: reads everything it needs, computes, then
    overwrites. Recomputing twice writes the same values.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.catalogue = get_material_catalogue()
        self.recommendation_service = get_recommendation_service()

    # ===================
    # LOADERS
    # ===================

    def _get_project(self, project_id: str) -> dict:
        try:
            result = (
                self.db.table("projects")
                .select("id, region, primary_waste_contractor_partner_id")
                .eq("id", project_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("get_project_failed", project_id=project_id, error=str(e))
            raise DatabaseError("select", str(e), {"table": "projects"})

        if not result.data:
            raise ProjectNotFoundError(project_id)
        return result.data[0]

    def _load_inputs(self, project_id: str) -> tuple[Optional[str], dict]:
        """Newest swmp_inputs row: (row id or None, inputs JSON)."""
        try:
            result = (
                self.db.table("swmp_inputs")
                .select(f"id, {INPUTS_COLUMN}")
                .eq("project_id", project_id)
                .order("created_at", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("load_inputs_failed", project_id=project_id, error=str(e))
            raise DatabaseError("select", str(e), {"table": "swmp_inputs"})

        if not result.data:
            return None, {}
        row = result.data[0]
        return row.get("id"), dict(row.get(INPUTS_COLUMN) or {})

    def _plans_from_inputs(self, project_id: str, inputs: dict) -> list[WasteStreamPlan]:
        """
        Stored plans as models.

        Plans without a category or that still fail validation are skipped.
        When two plans share a trimmed category the first one wins.
        """
        plans = []
        seen = set()
        for raw in inputs.get("waste_stream_plans") or []:
            if not isinstance(raw, dict) or not str(raw.get("category") or "").strip():
                logger.warning("stream_plan_skipped", project_id=project_id, reason="no_category")
                continue
            try:
                plan = WasteStreamPlan(**raw)
            except PydanticValidationError as e:
                logger.warning(
                    "stream_plan_skipped",
                    project_id=project_id,
                    reason="invalid",
                    category=str(raw.get("category")),
                    error=str(e),
                )
                continue

            key = plan.category.strip()
            if key in seen:
                logger.warning("duplicate_stream_plan_skipped", project_id=project_id, stream=key)
                continue
            seen.add(key)
            plans.append(plan)
        return plans

    def _load_plans(self, project_id: str) -> tuple[Optional[str], dict, list[WasteStreamPlan]]:
        row_id, inputs = self._load_inputs(project_id)
        return row_id, inputs, self._plans_from_inputs(project_id, inputs)

    def _save_plans(
        self,
        project_id: str,
        row_id: Optional[str],
        inputs: dict,
        plans: list[WasteStreamPlan],
    ) -> None:
        """Write plans back, keeping waste_streams in step and other keys untouched."""
        streams = [s for s in (inputs.get("waste_streams") or []) if isinstance(s, str)]
        for plan in plans:
            if plan.category not in streams:
                streams.append(plan.category)

        payload = {
            **inputs,
            "waste_streams": streams,
            "waste_stream_plans": [p.model_dump(mode="json") for p in plans],
        }

        try:
            if row_id:
                (
                    self.db.table("swmp_inputs")
                    .update({INPUTS_COLUMN: payload})
                    .eq("id", row_id)
                    .execute()
                )
            else:
                (
                    self.db.table("swmp_inputs")
                    .insert({"project_id": project_id, INPUTS_COLUMN: payload})
                    .execute()
                )
        except Exception as e:
            logger.error("save_plans_failed", project_id=project_id, error=str(e))
            raise DatabaseError("update", str(e), {"table": "swmp_inputs"})

        logger.info("stream_plans_saved", project_id=project_id, streams=len(plans))

    def _load_forecast_items(self, project_id: str) -> tuple[list[ForecastItem], int]:
        """Project items plus the number of rows that could not be read."""
        try:
            result = (
                self.db.table("project_forecast_items")
                .select("*")
                .eq("project_id", project_id)
                .execute()
            )
        except Exception as e:
            logger.error("load_forecast_items_failed", project_id=project_id, error=str(e))
            raise DatabaseError("select", str(e), {"table": "project_forecast_items"})

        items = []
        skipped = 0
        for row in result.data or []:
            try:
                items.append(ForecastItem(**row))
            except PydanticValidationError as e:
                skipped += 1
                logger.warning(
                    "forecast_item_skipped",
                    project_id=project_id,
                    item_id=row.get("id"),
                    error=str(e),
                )
        return items, skipped

    def _load_resolver(self) -> FacilityResolver:
        try:
            facilities = self.db.table("facilities").select("*").execute()
            partners = self.db.table("partners").select("id, name").execute()
        except Exception as e:
            logger.error("load_facilities_failed", error=str(e))
            raise DatabaseError("select", str(e), {"table": "facilities"})
        return FacilityResolver(
            [Facility(**row) for row in facilities.data or []],
            [Partner(**row) for row in partners.data or []],
        )

    def _load_distances(self, project_id: str) -> DistanceTable:
        try:
            result = (
                self.db.table("project_facility_distances")
                .select("facility_id, stream, distance_m, duration_s")
                .eq("project_id", project_id)
                .execute()
            )
        except Exception as e:
            logger.error("load_distances_failed", project_id=project_id, error=str(e))
            raise DatabaseError("select", str(e), {"table": "project_facility_distances"})
        return DistanceTable.from_rows(result.data or [])

    def _load_recommendations(self, project_id: str) -> list[StrategyRecommendation]:
        try:
            result = (
                self.db.table("project_strategy_recommendations")
                .select("*")
                .eq("project_id", project_id)
                .order("created_at")
                .execute()
            )
        except Exception as e:
            logger.error("load_recommendations_failed", project_id=project_id, error=str(e))
            raise DatabaseError("select", str(e), {"table": "project_strategy_recommendations"})
        return [StrategyRecommendation(**row) for row in result.data or []]

    # ===================
    # FORECAST
    # ===================

    def recompute_forecast_totals(self, project_id: str) -> ForecastSyncResult:
        """
        Recompute every stream's forecast tonnes from the project's items.

        Writes computed_waste_qty / computed_waste_kg back to each item and
        overwrites forecast_qty_tonnes on every plan (0 when no items).
        Unreadable rows count as invalid. Unallocated items are never
        moved; when their material type points at an existing stream it is
        returned as a suggestion.
        """
        logger.info("recomputing_forecast", project_id=project_id)
        self._get_project(project_id)

        items, invalid = self._load_forecast_items(project_id)
        row_id, inputs, plans = self._load_plans(project_id)
        labels = [p.category for p in plans]

        unallocated = conversion_required = included = 0
        converted_items = []
        suggestions = []
        for item in items:
            converted, error = convert_forecast_item(item, self.catalogue)
            converted_items.append(converted)

            if converted.waste_stream_key is None:
                unallocated += 1
                match = match_material_to_stream(converted.material_type, labels, self.catalogue)
                if match is not None:
                    suggestions.append(AllocationSuggestion(
                        item_id=converted.id,
                        material_type=converted.material_type.strip(),
                        stream_key=match,
                    ))
            elif isinstance(error, MissingConversionDataError):
                conversion_required += 1
            elif isinstance(error, (InvalidQuantityError, UnsupportedUnitError)):
                invalid += 1
            else:
                included += 1

            self._update_item(converted)

        plans = recompute_forecast_totals(plans, converted_items)
        self._save_plans(project_id, row_id, inputs, plans)

        totals = compute_forecast_totals_by_stream(converted_items)
        stream_totals = [
            StreamTotal(stream_key=p.category, total_tonnes=p.forecast_qty_tonnes or 0.0)
            for p in plans
        ]
        plan_keys = {p.category for p in plans}
        stream_totals.extend(
            StreamTotal(stream_key=key, total_tonnes=tonnes)
            for key, tonnes in sorted(totals.items())
            if key not in plan_keys
        )

        logger.info(
            "forecast_recomputed",
            project_id=project_id,
            items=len(items),
            included=included,
            unallocated=unallocated,
            conversion_required=conversion_required,
            invalid=invalid,
        )
        return ForecastSyncResult(
            project_id=project_id,
            stream_totals=stream_totals,
            unallocated_count=unallocated,
            conversion_required_count=conversion_required,
            invalid_count=invalid,
            included_count=included,
            allocation_suggestions=suggestions,
        )

    def _update_item(self, item: ForecastItem) -> None:
        try:
            (
                self.db.table("project_forecast_items")
                .update({
                    "computed_waste_qty": item.computed_waste_qty,
                    "computed_waste_kg": item.computed_waste_kg,
                })
                .eq("id", item.id)
                .execute()
            )
        except Exception as e:
            logger.error("update_forecast_item_failed", item_id=item.id, error=str(e))
            raise DatabaseError("update", str(e), {"table": "project_forecast_items", "id": item.id})

    # ===================
    # DIVERSION / STREAMS
    # ===================

    def compute_diversion_summary(self, plans: list[WasteStreamPlan]) -> DiversionSummary:
        """Diversion for plans supplied by the caller. No database access."""
        return compute_diversion(plans, self.catalogue)

    def get_diversion_summary(self, project_id: str) -> DiversionSummary:
        self._get_project(project_id)
        _row_id, _inputs, plans = self._load_plans(project_id)
        return compute_diversion(plans, self.catalogue)

    def get_stream_statuses(self, project_id: str, require_tonnes: bool = False) -> list[StreamStatus]:
        self._get_project(project_id)
        _row_id, _inputs, plans = self._load_plans(project_id)
        return stream_statuses(plans, self.catalogue, require_tonnes=require_tonnes)

    # ===================
    # FACILITIES
    # ===================

    def suggest_facilities(
        self,
        project_id: str,
        stream: str,
        partner_id: Optional[str] = None,
    ) -> FacilitySuggestions:
        """
        Ranked facilities for one of the project's streams.

        Partner scope: the argument, then the stream plan's partner, then
        the project's primary waste contractor.
        """
        project = self._get_project(project_id)
        _row_id, _inputs, plans = self._load_plans(project_id)
        plan = find_plan(plans, stream)

        partner = (
            partner_id
            or (plan.partner_id if plan else None)
            or project.get("primary_waste_contractor_partner_id")
        )
        resolver = self._load_resolver()
        distances = self._load_distances(project_id)

        return resolver.suggest(
            stream.strip(),
            project.get("region"),
            partner_id=partner,
            distances=distances,
            assigned_facility_id=plan.facility_ref if plan else None,
        )

    def list_facilities(
        self,
        region: Optional[str] = None,
        stream: Optional[str] = None,
        partner_id: Optional[str] = None,
    ) -> list[Facility]:
        resolver = self._load_resolver()
        if region and stream:
            return resolver.facilities_for(partner_id, region, stream)
        facilities = resolver.facilities
        if region:
            facilities = [f for f in facilities if f.region.strip().lower() == region.strip().lower()]
        if stream:
            facilities = [f for f in facilities if stream.strip() in f.accepted_streams]
        if partner_id:
            facilities = [f for f in facilities if f.partner_id == partner_id]
        return facilities

    def list_partners(self) -> list[Partner]:
        return sorted(self._load_resolver().partners.values(), key=lambda p: p.name)

    # ===================
    # RECOMMENDATIONS
    # ===================

    def list_recommendations(
        self,
        project_id: str,
        include_resolved: bool = True,
    ) -> RecommendationListResponse:
        self._get_project(project_id)
        _row_id, _inputs, plans = self._load_plans(project_id)
        recommendations = self._load_recommendations(project_id)
        items, _skipped = self._load_forecast_items(project_id)
        unallocated = sum(1 for item in items if item.waste_stream_key is None)

        annotated = self.recommendation_service.with_status(recommendations, plans, unallocated)
        resolved_count = sum(1 for r in annotated if r.resolved)
        if not include_resolved:
            annotated = [r for r in annotated if not r.resolved]

        return RecommendationListResponse(
            data=annotated,
            total=len(annotated),
            resolved_count=resolved_count,
        )

    def apply_recommendation(self, project_id: str, recommendation_id: str) -> ApplyRecommendationResponse:
        """
        Apply a stored recommendation and persist the plans.

        Raises:
            RecommendationNotFoundError: No such recommendation for the project
            RecommendationNotActionableError: It has no apply action
        """
        self._get_project(project_id)
        recommendation = next(
            (r for r in self._load_recommendations(project_id) if r.id == recommendation_id),
            None,
        )
        if recommendation is None:
            raise RecommendationNotFoundError(recommendation_id)
        if recommendation.apply_action is None:
            raise RecommendationNotActionableError(recommendation_id)
        return self._apply(project_id, recommendation.apply_action, recommendation_id)

    def apply_action(self, project_id: str, action: ApplyAction) -> ApplyRecommendationResponse:
        """Apply an ad-hoc action and persist the plans."""
        self._get_project(project_id)
        return self._apply(project_id, action, None)

    def _apply(
        self,
        project_id: str,
        action: ApplyAction,
        recommendation_id: Optional[str],
    ) -> ApplyRecommendationResponse:
        row_id, inputs, plans = self._load_plans(project_id)

        resolver = distances = None
        if action.known_type == ApplyActionType.SET_FACILITY:
            resolver = self._load_resolver()
            distances = self._load_distances(project_id)

        try:
            updated = self.recommendation_service.apply_action(action, plans, resolver, distances)
        except AppError as e:
            logger.warning(
                "apply_action_failed",
                project_id=project_id,
                action=action.type,
                code=e.code,
            )
            raise

        self._save_plans(project_id, row_id, inputs, updated)

        unallocated = None
        if action.known_type == ApplyActionType.ALLOCATE_TO_MIXED:
            sync = self._allocate_unallocated_to_mixed(project_id)
            unallocated = sync.unallocated_count
            _row_id, _inputs, updated = self._load_plans(project_id)

        resolved = self.recommendation_service.is_action_satisfied(action, updated, unallocated)

        logger.info(
            "action_applied",
            project_id=project_id,
            recommendation_id=recommendation_id,
            action=action.type,
            resolved=resolved,
        )
        return ApplyRecommendationResponse(
            project_id=project_id,
            recommendation_id=recommendation_id,
            action_type=action.type,
            resolved=resolved,
            plans=updated,
            diversion=compute_diversion(updated, self.catalogue),
        )

    def _allocate_unallocated_to_mixed(self, project_id: str) -> ForecastSyncResult:
        """Move every unallocated forecast item to Mixed C&D, then recompute."""
        items, _skipped = self._load_forecast_items(project_id)
        item_ids = [item.id for item in items if item.waste_stream_key is None]

        if item_ids:
            try:
                (
                    self.db.table("project_forecast_items")
                    .update({"waste_stream_key": MIXED_CD_KEY})
                    .eq("project_id", project_id)
                    .in_("id", item_ids)
                    .execute()
                )
            except Exception as e:
                logger.error("allocate_to_mixed_failed", project_id=project_id, error=str(e))
                raise DatabaseError("update", str(e), {"table": "project_forecast_items"})

        logger.info("items_allocated_to_mixed", project_id=project_id, items=len(item_ids))
        return self.recompute_forecast_totals(project_id)

    # ===================
    # FACILITY OPTIMISER
    # ===================

    def optimise_facilities(self, project_id: str, limit: int = 3) -> FacilityOptimiserResult:
        """
        Facility options for every stream with tonnes.

        For each stream: the assigned facility with its cached route, the
        best facility for the stream's partner (then the project's primary
        contractor, then anyone) and the nearest accepting facilities that
        have a cached distance.
        """
        project = self._get_project(project_id)
        _row_id, _inputs, plans = self._load_plans(project_id)
        resolver = self._load_resolver()
        distances = self._load_distances(project_id)
        region = project.get("region")
        primary_partner = project.get("primary_waste_contractor_partner_id")

        streams = []
        for plan, status in zip(plans, stream_statuses(plans, self.catalogue)):
            if status.total_tonnes <= 0:
                continue
            stream = plan.category.strip()

            assigned = resolver.get_facility(plan.facility_ref)
            route = distances.lookup(stream, assigned.id) if assigned else None
            best = resolver.pick_best_facility(
                stream,
                region,
                partner_id=plan.partner_id or primary_partner,
                distances=distances,
            )

            nearest = []
            candidates = resolver.facilities_for(None, region, stream)
            ordered = nearest_facilities(stream, candidates, distances, include_missing=False)
            for position, (facility, row) in enumerate(ordered[:limit], start=1):
                partner = resolver.get_partner(facility.partner_id)
                nearest.append(FacilitySuggestion(
                    facility_id=facility.id,
                    facility_name=facility.name,
                    partner_id=facility.partner_id,
                    partner_name=partner.name if partner else None,
                    region=facility.region,
                    distance_km=row.distance_km,
                    duration_min=row.duration_min,
                    rank=position,
                ))

            streams.append(StreamFacilityOptions(
                stream=stream,
                total_tonnes=status.total_tonnes,
                assigned_facility_id=plan.facility_ref,
                assigned_facility_name=assigned.name if assigned else None,
                assigned_distance_km=route.distance_km if route else plan.distance_km,
                assigned_duration_min=route.duration_min if route else plan.duration_min,
                recommended_facility_id=best.id if best else None,
                nearest=nearest,
            ))

        logger.info(
            "facility_options_built",
            project_id=project_id,
            streams=len(streams),
            distances_cached=len(distances),
        )
        return FacilityOptimiserResult(
            project_id=project_id,
            region=region,
            distances_cached=len(distances),
            streams=streams,
        )

    def apply_facility_assignments(
        self,
        project_id: str,
        assignments: list[FacilityAssignment],
    ) -> FacilityAssignmentResult:
        """
        Set the facility on several existing streams in one write.

        Entries with a blank stream or facility are ignored. Streams the
        project has no plan for are reported, not created. Nothing is saved
        when any facility is unknown.

        Raises:
            ValidationError: No usable assignment
            NotFoundError: Project has no swmp_inputs row
            UnresolvedTargetError: Facility not in the catalogue
        """
        self._get_project(project_id)

        wanted = [(a.stream_name.strip(), a.facility_id.strip()) for a in assignments]
        wanted = [(stream, facility_id) for stream, facility_id in wanted if stream and facility_id]
        if not wanted:
            raise ValidationError(
                message="At least one stream and facility assignment is required",
                code="NO_ASSIGNMENTS",
            )

        row_id, inputs, plans = self._load_plans(project_id)
        if row_id is None:
            raise NotFoundError("swmp_inputs", project_id, code="INPUTS_NOT_FOUND")

        resolver = self._load_resolver()
        distances = self._load_distances(project_id)

        applied = 0
        skipped = []
        for stream, facility_id in wanted:
            if find_plan(plans, stream) is None:
                skipped.append(stream)
                continue
            action = ApplyAction(
                type=ApplyActionType.SET_FACILITY.value,
                payload={"stream_name": stream, "facility_id": facility_id},
            )
            plans = self.recommendation_service.apply_action(action, plans, resolver, distances)
            applied += 1

        if applied:
            self._save_plans(project_id, row_id, inputs, plans)

        logger.info(
            "facility_assignments_applied",
            project_id=project_id,
            applied=applied,
            skipped=len(skipped),
        )
        return FacilityAssignmentResult(
            project_id=project_id,
            applied=applied,
            skipped_streams=skipped,
            plans=plans,
        )


# Singleton instance
_waste_plan_service: Optional[WastePlanService] = None


def get_waste_plan_service() -> WastePlanService:
    """Get or create waste plan service instance."""
    global _waste_plan_service
    if _waste_plan_service is None:
        _waste_plan_service = WastePlanService()
    return _waste_plan_service

"""
Recommendation service.

Applies stored strategy recommendations to a project's stream plans and
tells whether a recommendation is already satisfied. Resolution is
always derived from the plans passed in; nothing is stored.

Action types:
    mark_stream_separate  {stream_name}                       handling_mode -> separated
    set_facility          {stream_name, facility_id, partner_id?}
    set_outcome           {intended_outcomes?}                fills unknown outcomes only
    create_stream         {stream_name}
    allocate_to_mixed     {}                                  Mixed C&D stream; items moved by WastePlanService
"""

from typing import Optional
import structlog

from config.materials import INTENDED_OUTCOMES, LEGACY_OUTCOMES, MIXED_CD_KEY, OUTCOME_RECYCLE
from exceptions import (
    RecommendationNotActionableError,
    UnresolvedTargetError,
    UnsupportedActionError,
    ValidationError,
)
from models.recommendation import (
    ApplyAction,
    ApplyActionType,
    RecommendationWithStatus,
    StrategyRecommendation,
)
from models.waste_stream import DestinationMode, HandlingMode, WasteStreamPlan
from services.catalogue_service import MaterialCatalogue, get_material_catalogue
from services.facility_service import DistanceTable, FacilityResolver
from services.stream_service import ensure_mixed_stream, ensure_stream, find_plan

logger = structlog.get_logger(__name__)


def is_unknown_outcome(outcomes: Optional[list[str]]) -> bool:
    """True when none of the outcomes is a recognised intended outcome."""
    known = {str(o).strip() for o in (outcomes or [])}
    return not known.intersection(INTENDED_OUTCOMES)


class RecommendationService:
    """
    Recommendation apply/resolve logic.

    Pure: takes plans, returns new plans. Persistence lives in
    WastePlanService.
    """

    def __init__(self, catalogue: Optional[MaterialCatalogue] = None):
        self.catalogue = catalogue or get_material_catalogue()

    # ===================
    # RESOLUTION
    # ===================

    def is_resolved(
        self,
        recommendation: StrategyRecommendation,
        plans: list[WasteStreamPlan],
        unallocated_count: Optional[int] = None,
    ) -> bool:
        """
        Whether the recommendation's target state already holds.

        Never raises. No action, unknown action types and missing stream
        names are unresolved. allocate_to_mixed needs the project's count
        of unallocated forecast items; without it the answer is False.
        """
        action = recommendation.apply_action
        if action is None:
            return False
        return self.is_action_satisfied(action, plans, unallocated_count)

    def is_action_satisfied(
        self,
        action: ApplyAction,
        plans: list[WasteStreamPlan],
        unallocated_count: Optional[int] = None,
    ) -> bool:
        action_type = action.known_type
        stream = action.stream

        if action_type == ApplyActionType.SET_OUTCOME:
            return not any(is_unknown_outcome(p.intended_outcomes) for p in plans)
        if action_type == ApplyActionType.ALLOCATE_TO_MIXED:
            return unallocated_count == 0 and find_plan(plans, MIXED_CD_KEY) is not None

        if action_type is None or stream is None:
            return False

        plan = find_plan(plans, stream)
        if plan is None:
            return False
        if action_type == ApplyActionType.CREATE_STREAM:
            return True
        if action_type == ApplyActionType.MARK_STREAM_SEPARATE:
            return plan.handling_mode == HandlingMode.SEPARATED
        if action_type == ApplyActionType.SET_FACILITY:
            return plan.facility_ref is not None
        return False

    def with_status(
        self,
        recommendations: list[StrategyRecommendation],
        plans: list[WasteStreamPlan],
        unallocated_count: Optional[int] = None,
    ) -> list[RecommendationWithStatus]:
        """Annotate recommendations with resolved / actionable flags."""
        result = []
        for rec in recommendations:
            actionable = rec.apply_action is not None and rec.apply_action.known_type is not None
            result.append(RecommendationWithStatus(
                **rec.model_dump(),
                resolved=self.is_resolved(rec, plans, unallocated_count),
                actionable=actionable,
            ))
        return result

    # ===================
    # APPLY
    # ===================

    def apply(
        self,
        recommendation: StrategyRecommendation,
        plans: list[WasteStreamPlan],
        resolver: Optional[FacilityResolver] = None,
        distances: Optional[DistanceTable] = None,
    ) -> list[WasteStreamPlan]:
        """
        Apply a recommendation's action.

        Raises:
            RecommendationNotActionableError: No apply action
            plus everything apply_action raises
        """
        if recommendation.apply_action is None:
            raise RecommendationNotActionableError(recommendation.id)
        return self.apply_action(recommendation.apply_action, plans, resolver, distances)

    def apply_action(
        self,
        action: ApplyAction,
        plans: list[WasteStreamPlan],
        resolver: Optional[FacilityResolver] = None,
        distances: Optional[DistanceTable] = None,
    ) -> list[WasteStreamPlan]:
        """
        Apply an action to the plans. Idempotent.

        Stream-targeted actions create the stream first when missing.

        Args:
            action: Action to apply
            plans: Current plans (not modified)
            resolver: When given, set_facility checks the facility exists
                and takes its partner
            distances: When given, set_facility copies the cached route

        Returns:
            New list of plans

        Raises:
            UnsupportedActionError: Unknown action type
            UnresolvedTargetError: Missing stream name or facility
            UnknownStreamLabelError: Stream not in the catalogue
            ValidationError: set_outcome with an unrecognised outcome
        """
        action_type = action.known_type
        if action_type is None:
            raise UnsupportedActionError(action.type)

        if action_type == ApplyActionType.SET_OUTCOME:
            return self._set_outcome(action, plans)
        if action_type == ApplyActionType.ALLOCATE_TO_MIXED:
            return ensure_mixed_stream(plans, self.catalogue)

        stream = action.stream
        if stream is None:
            raise UnresolvedTargetError(action.type, "stream name is required")

        plans = ensure_stream(plans, stream, self.catalogue, allow_custom=False)

        if action_type == ApplyActionType.CREATE_STREAM:
            return plans
        if action_type == ApplyActionType.MARK_STREAM_SEPARATE:
            return [
                p.model_copy(update={"handling_mode": HandlingMode.SEPARATED})
                if p.category.strip() == stream else p
                for p in plans
            ]
        return self._set_facility(action, stream, plans, resolver, distances)

    def _set_facility(
        self,
        action: ApplyAction,
        stream: str,
        plans: list[WasteStreamPlan],
        resolver: Optional[FacilityResolver],
        distances: Optional[DistanceTable],
    ) -> list[WasteStreamPlan]:
        facility_id = str(action.payload.get("facility_id") or "").strip()
        if not facility_id:
            raise UnresolvedTargetError(action.type, "facility_id is required", stream=stream)

        partner_id = str(action.payload.get("partner_id") or "").strip() or None
        if resolver is not None:
            facility = resolver.get_facility(facility_id)
            if facility is None:
                raise UnresolvedTargetError(action.type, f"facility {facility_id} not found", stream=stream)
            facility_id = facility.id
            partner_id = partner_id or facility.partner_id

        updated = []
        for plan in plans:
            if plan.category.strip() != stream:
                updated.append(plan)
                continue
            changes = {
                "destination_mode": DestinationMode.FACILITY,
                "facility_id": facility_id,
            }
            if partner_id is not None:
                changes["partner_id"] = partner_id
            route = distances.lookup(stream, facility_id) if distances is not None else None
            if route is not None:
                changes["distance_km"] = route.distance_km
                changes["duration_min"] = route.duration_min
            elif plan.facility_ref != facility_id:
                changes["distance_km"] = None
                changes["duration_min"] = None
            updated.append(plan.model_copy(update=changes))

        logger.info("facility_set", stream=stream, facility_id=facility_id, partner_id=partner_id)
        return updated

    def _set_outcome(self, action: ApplyAction, plans: list[WasteStreamPlan]) -> list[WasteStreamPlan]:
        raw = action.payload.get("intended_outcomes") or action.payload.get("outcome")
        if isinstance(raw, str):
            raw = [raw]
        outcome = str(raw[0]).strip() if raw else OUTCOME_RECYCLE
        outcome = LEGACY_OUTCOMES.get(outcome, outcome)
        if outcome not in INTENDED_OUTCOMES:
            raise ValidationError(
                message=f"Unknown intended outcome: {outcome}",
                code="INVALID_OUTCOME",
                details={"outcome": outcome, "valid": list(INTENDED_OUTCOMES)}
            )

        filled = 0
        updated = []
        for plan in plans:
            if is_unknown_outcome(plan.intended_outcomes):
                updated.append(plan.model_copy(update={"intended_outcomes": [outcome]}))
                filled += 1
            else:
                updated.append(plan)

        logger.info("outcomes_filled", outcome=outcome, streams=filled)
        return updated


# Singleton instance
_recommendation_service: Optional[RecommendationService] = None


def get_recommendation_service() -> RecommendationService:
    """Get or create recommendation service instance."""
    global _recommendation_service
    if _recommendation_service is None:
        _recommendation_service = RecommendationService()
    return _recommendation_service

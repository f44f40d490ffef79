"""
Unit tests for stream aggregation.

Run: pytest tests/unit/test_stream_service.py -v
"""

import pytest

from services.stream_service import (
    find_plan,
    match_material_to_stream,
    suggested_stream_for_material,
    compute_forecast_totals_by_stream,
    recompute_forecast_totals,
    ensure_stream,
    ensure_mixed_stream,
    refresh_manual_tonnes,
    has_destination_set,
    is_stream_complete,
    stream_statuses,
    PATHWAY_TEMPLATE,
)
from models.waste_stream import HandlingMode
from exceptions import UnknownStreamLabelError

from tests.factories import PlanFactory, ForecastItemFactory


class TestForecastTotals:
    """Tests for compute_forecast_totals_by_stream() / recompute_forecast_totals()"""

    def test_sums_kg_per_stream(self):
        """Totals are Σ kg / 1000 per stream."""
        items = [
            ForecastItemFactory.allocated_kg("Metals", 1000),
            ForecastItemFactory.allocated_kg("Metals", 500),
            ForecastItemFactory.allocated_kg("Glass", 250),
        ]

        totals = compute_forecast_totals_by_stream(items)

        assert totals == {"Metals": pytest.approx(1.5), "Glass": pytest.approx(0.25)}

    def test_skips_unallocated_and_unusable(self):
        """Unallocated, null and negative kg never count."""
        items = [
            ForecastItemFactory.allocated_kg(None, 1000),
            ForecastItemFactory.allocated_kg("Metals", None),
            ForecastItemFactory.allocated_kg("Metals", -10),
            ForecastItemFactory.allocated_kg("Metals", float("inf")),
            ForecastItemFactory.allocated_kg("Metals", 200),
        ]

        totals = compute_forecast_totals_by_stream(items)

        assert totals == {"Metals": pytest.approx(0.2)}

    def test_blank_stream_key_is_unallocated(self):
        item = ForecastItemFactory.allocated_kg("   ", 100)

        assert item.waste_stream_key is None
        assert compute_forecast_totals_by_stream([item]) == {}

    def test_recompute_overwrites_every_plan(self):
        """Streams without items are reset to 0, not left stale."""
        # Arrange
        plans = [
            PlanFactory.build(category="Metals", forecast_qty_tonnes=9.0),
            PlanFactory.build(category="Glass", forecast_qty_tonnes=4.0),
        ]
        items = [ForecastItemFactory.allocated_kg("Metals", 2500)]

        # Act
        updated = recompute_forecast_totals(plans, items)

        # Assert
        assert updated[0].forecast_qty_tonnes == pytest.approx(2.5)
        assert updated[1].forecast_qty_tonnes == 0.0
        assert plans[0].forecast_qty_tonnes == 9.0

    def test_recompute_is_idempotent(self):
        """Running twice gives the same plans."""
        plans = [PlanFactory.build(category="Metals"), PlanFactory.build(category="Glass")]
        items = [
            ForecastItemFactory.allocated_kg("Metals", 1200),
            ForecastItemFactory.allocated_kg("Glass", 300),
        ]

        once = recompute_forecast_totals(plans, items)
        twice = recompute_forecast_totals(once, items)

        assert [p.forecast_qty_tonnes for p in once] == [p.forecast_qty_tonnes for p in twice]

    def test_recompute_sum_matches_allocated_items(self):
        """Σ forecast tonnes equals Σ allocated kg / 1000 for streams with plans."""
        plans = [PlanFactory.build(category=c) for c in ("Metals", "Glass", "Cardboard")]
        kgs = [("Metals", 100), ("Metals", 900), ("Glass", 50), ("Cardboard", 3000)]
        items = [ForecastItemFactory.allocated_kg(stream, kg) for stream, kg in kgs]

        updated = recompute_forecast_totals(plans, items)

        assert sum(p.forecast_qty_tonnes for p in updated) == pytest.approx(sum(kg for _s, kg in kgs) / 1000)

    def test_manual_quantity_untouched(self):
        """Recompute never writes manual fields."""
        plans = [PlanFactory.build(category="Metals", manual_qty=3, unit="t", manual_qty_tonnes=3)]

        updated = recompute_forecast_totals(plans, [ForecastItemFactory.allocated_kg("Metals", 1000)])

        assert updated[0].manual_qty == 3
        assert updated[0].manual_qty_tonnes == 3


class TestEnsureStream:
    """Tests for ensure_stream()"""

    def test_adds_plan_with_defaults(self):
        """New stream gets catalogue unit, default outcomes and pathway."""
        plans = ensure_stream([], "Metals")

        assert len(plans) == 1
        plan = plans[0]
        assert plan.category == "Metals"
        assert plan.unit == "m3"
        assert plan.intended_outcomes == ["Recycle"]
        assert plan.handling_mode == HandlingMode.MIXED
        assert plan.pathway == PATHWAY_TEMPLATE.format(category="Metals")

    def test_idempotent(self):
        """Ensuring the same stream twice leaves one entry."""
        once = ensure_stream([], "Glass")
        twice = ensure_stream(once, "Glass")

        assert len(twice) == 1
        assert twice[0] == once[0]

    def test_matches_after_trimming(self):
        plans = [PlanFactory.build(category="Glass")]

        assert len(ensure_stream(plans, "  Glass ")) == 1

    def test_blank_label_is_noop(self):
        plans = [PlanFactory.build(category="Glass")]

        assert ensure_stream(plans, "   ") == plans
        assert ensure_stream(plans, None) == plans

    def test_custom_label_allowed_by_default(self):
        plans = ensure_stream([], "Vinyl offcuts")

        assert plans[0].category == "Vinyl offcuts"
        assert plans[0].unit is None
        assert plans[0].intended_outcomes == ["Recycle"]

    def test_custom_label_rejected_when_not_allowed(self):
        with pytest.raises(UnknownStreamLabelError):
            ensure_stream([], "Vinyl offcuts", allow_custom=False)

    def test_default_outcomes_follow_label(self):
        labels = ["Timber (untreated)", "Timber (treated)", "Cleanfill soil", "Mixed C&D"]
        plans = []
        for label in labels:
            plans = ensure_stream(plans, label)

        outcomes = {p.category: p.intended_outcomes for p in plans}
        assert outcomes["Timber (untreated)"] == ["Reuse", "Recycle"]
        assert outcomes["Timber (treated)"] == ["Recover"]
        assert outcomes["Cleanfill soil"] == ["Cleanfill"]
        assert outcomes["Mixed C&D"] == ["Recover", "Landfill"]

    def test_ensure_mixed_stream(self):
        plans = ensure_mixed_stream([])

        assert find_plan(plans, "Mixed C&D") is not None


class TestMaterialMatching:
    """Tests for match_material_to_stream()"""

    def test_exact_label_wins(self):
        assert match_material_to_stream("Glass", ["Glass", "Metals"]) == "Glass"

    def test_first_existing_preference(self):
        """Timber prefers untreated, falls back to treated."""
        assert match_material_to_stream("Timber", ["Timber (treated)", "Timber (untreated)"]) == "Timber (untreated)"
        assert match_material_to_stream("Timber", ["Timber (treated)"]) == "Timber (treated)"

    def test_no_candidate_is_unallocated(self):
        """Ambiguous or unknown material types are None, not an error."""
        assert match_material_to_stream("Timber", ["Metals"]) is None
        assert match_material_to_stream("Unobtainium", ["Metals"]) is None
        assert match_material_to_stream(None, ["Metals"]) is None
        assert match_material_to_stream("Metals", []) is None

    def test_suggested_stream(self):
        assert suggested_stream_for_material("Plastics") == "Soft plastics (wrap/strapping)"
        assert suggested_stream_for_material("Other") == "Mixed C&D"

    def test_suggested_stream_unmapped_uses_material_type(self):
        """Unmapped types suggest their own trimmed name; blank suggests nothing."""
        assert suggested_stream_for_material(" Vinyl offcuts ") == "Vinyl offcuts"
        assert suggested_stream_for_material("   ") is None
        assert suggested_stream_for_material(None) is None


class TestManualTonnesAndStatus:
    """Tests for refresh_manual_tonnes() and completion status."""

    def test_refresh_manual_tonnes(self):
        plans = [
            PlanFactory.build(category="Metals", manual_qty=1500, unit="kg"),
            PlanFactory.build(category="Vinyl offcuts", manual_qty=10, unit="m2", manual_qty_tonnes=5),
            PlanFactory.build(category="Glass"),
        ]

        refreshed = refresh_manual_tonnes(plans)

        assert refreshed[0].manual_qty_tonnes == pytest.approx(1.5)
        assert refreshed[1].manual_qty_tonnes is None
        assert refreshed[2].manual_qty_tonnes is None

    def test_destination_set_facility(self):
        assert has_destination_set(PlanFactory.build(facility_id="fac-1"))
        assert not has_destination_set(PlanFactory.build(facility_id="  "))

    def test_destination_set_custom(self):
        plan = PlanFactory.build(destination_mode="custom", custom_destination_name="Council transfer station")

        assert has_destination_set(plan)
        assert not has_destination_set(PlanFactory.build(destination_mode="custom", facility_id="fac-1"))

    def test_complete_requires_outcome_and_destination(self):
        assert is_stream_complete(PlanFactory.build(facility_id="fac-1"))
        assert not is_stream_complete(PlanFactory.build(facility_id="fac-1", intended_outcomes=[]))
        assert not is_stream_complete(PlanFactory.build())

    def test_complete_with_required_tonnes(self):
        empty = PlanFactory.build(facility_id="fac-1")
        filled = PlanFactory.build(facility_id="fac-1", manual_qty=1, unit="t")

        assert not is_stream_complete(empty, require_tonnes=True)
        assert is_stream_complete(filled, require_tonnes=True)

    def test_stream_statuses(self):
        plans = [
            PlanFactory.build(category="Metals", manual_qty=2, unit="t", forecast_qty_tonnes=0.5, facility_id="fac-1"),
            PlanFactory.build(category="Vinyl offcuts", manual_qty=10, unit="m2"),
            PlanFactory.build(category="Glass"),
            PlanFactory.build(category="Cardboard", manual_qty=-1, unit="t"),
        ]

        statuses = {s.category: s for s in stream_statuses(plans)}

        assert statuses["Metals"].total_tonnes == pytest.approx(2.5)
        assert statuses["Metals"].complete is True
        assert statuses["Metals"].needs_attention is None
        assert statuses["Vinyl offcuts"].manual_tonnes is None
        assert statuses["Vinyl offcuts"].needs_attention == "missing_thickness"
        assert statuses["Glass"].needs_attention == "missing_quantity"
        assert statuses["Cardboard"].needs_attention == "invalid_quantity"

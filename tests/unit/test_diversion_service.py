"""
Unit tests for the diversion calculator.

Run: pytest tests/unit/test_diversion_service.py -v
"""

import pytest

from services.diversion_service import compute_diversion

from tests.factories import PlanFactory


class TestComputeDiversion:
    """Tests for compute_diversion()"""

    def test_empty_plans_are_all_zero(self):
        """No plans -> zero totals and percentages, no lists."""
        summary = compute_diversion([])

        assert summary.total_tonnes == 0
        assert summary.diversion_pct == 0
        assert summary.landfill_avoidance_pct == 0
        assert summary.missing_thickness_streams == []
        assert summary.missing_quantity_streams == []
        assert summary.streams == []

    def test_recycle_reuse_and_landfill(self):
        """2 t Recycle + 3 t Reuse + 5 t Landfill -> 10 t, 50% / 50%."""
        # Arrange
        plans = [
            PlanFactory.build(category="Metals", manual_qty=2, unit="t", intended_outcomes=["Recycle"]),
            PlanFactory.build(category="Timber (untreated)", manual_qty=3, unit="t", intended_outcomes=["Reuse"]),
            PlanFactory.build(category="Mixed C&D", manual_qty=5, unit="t", intended_outcomes=["Landfill"]),
        ]

        # Act
        summary = compute_diversion(plans)

        # Assert
        assert summary.total_tonnes == pytest.approx(10)
        assert summary.diverted_tonnes == pytest.approx(5)
        assert summary.diversion_pct == pytest.approx(50)
        assert summary.landfill_avoidance_pct == pytest.approx(50)

    def test_cleanfill_counts_for_landfill_avoidance_only(self):
        plans = [
            PlanFactory.build(category="Metals", manual_qty=1, unit="t", intended_outcomes=["Recycle"]),
            PlanFactory.build(category="Cleanfill soil", manual_qty=3, unit="t", intended_outcomes=["Cleanfill"]),
        ]

        summary = compute_diversion(plans)

        assert summary.diversion_pct == pytest.approx(25)
        assert summary.landfill_avoidance_pct == pytest.approx(100)

    def test_only_first_outcome_counts(self):
        """Landfill first, Recycle second -> not diverted."""
        plans = [
            PlanFactory.build(category="Metals", manual_qty=4, unit="t", intended_outcomes=["Landfill", "Recycle"]),
        ]

        summary = compute_diversion(plans)

        assert summary.total_tonnes == pytest.approx(4)
        assert summary.diversion_pct == 0

    def test_manual_and_forecast_add_up(self):
        plans = [
            PlanFactory.build(category="Metals", manual_qty=500, unit="kg", forecast_qty_tonnes=1.5),
        ]

        summary = compute_diversion(plans)

        assert summary.total_tonnes == pytest.approx(2.0)
        assert summary.streams[0].manual_tonnes == pytest.approx(0.5)
        assert summary.streams[0].forecast_tonnes == pytest.approx(1.5)

    def test_zero_and_absent_quantities_listed(self):
        plans = [
            PlanFactory.build(category="Metals", manual_qty=0, unit="t"),
            PlanFactory.build(category="Glass"),
            PlanFactory.build(category="Cardboard", manual_qty=1, unit="t"),
        ]

        summary = compute_diversion(plans)

        assert summary.missing_quantity_streams == ["Metals", "Glass"]
        assert summary.total_tonnes == pytest.approx(1)

    def test_missing_thickness_excluded_from_totals(self):
        """Area quantity with no thickness is listed and adds nothing, forecast included."""
        plans = [
            PlanFactory.build(category="Vinyl offcuts", manual_qty=50, unit="m2", forecast_qty_tonnes=2),
            PlanFactory.build(category="Metals", manual_qty=1, unit="t"),
        ]

        summary = compute_diversion(plans)

        assert summary.missing_thickness_streams == ["Vinyl offcuts"]
        assert summary.total_tonnes == pytest.approx(1)
        assert [s.category for s in summary.streams] == ["Metals"]

    def test_catalogue_thickness_used_for_area_streams(self):
        plans = [PlanFactory.build(category="Carpet / carpet tiles", manual_qty=500, unit="m2")]

        summary = compute_diversion(plans)

        # 500 × 0.01 × 200 / 1000
        assert summary.total_tonnes == pytest.approx(1.0)
        assert summary.missing_thickness_streams == []

    def test_invalid_quantity_listed(self):
        plans = [
            PlanFactory.build(category="Metals", manual_qty=-2, unit="t"),
            PlanFactory.build(category="Glass", manual_qty=2, unit="bags"),
        ]

        summary = compute_diversion(plans)

        assert summary.invalid_quantity_streams == ["Metals", "Glass"]
        assert summary.total_tonnes == 0

    def test_percentages_bounded(self):
        plans = [
            PlanFactory.build(category=f"Stream {i}", manual_qty=i + 1, unit="t", intended_outcomes=[outcome])
            for i, outcome in enumerate(["Recycle", "Reuse", "Cleanfill", "Landfill", "Recover"])
        ]

        summary = compute_diversion(plans)

        assert 0 <= summary.diversion_pct <= summary.landfill_avoidance_pct <= 100

    def test_legacy_outcome_names_normalised(self):
        """5 t "Clean fill" + 5 t "Dispose" -> Cleanfill / Landfill -> 50% avoidance."""
        # Arrange
        plans = [
            PlanFactory.build(category="Cleanfill soil", manual_qty=5, unit="t", intended_outcomes=["Clean fill"]),
            PlanFactory.build(category="Mixed C&D", manual_qty=5, unit="t", intended_outcomes=["Dispose"]),
        ]

        # Act
        summary = compute_diversion(plans)

        # Assert
        assert [p.intended_outcomes for p in plans] == [["Cleanfill"], ["Landfill"]]
        assert summary.diversion_pct == 0
        assert summary.landfill_avoidance_pct == pytest.approx(50)

    def test_outcomes_outside_vocabulary_dropped(self):
        plan = PlanFactory.build(category="Metals", manual_qty=1, unit="t", intended_outcomes=["Teleport", " Recycle "])

        assert plan.intended_outcomes == ["Recycle"]
        assert PlanFactory.build(intended_outcomes=["Teleport"]).first_outcome is None

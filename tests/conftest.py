"""
Shared test fixtures.

The mock Supabase client keeps rows per table, applies eq / is_ / in_
filters, ordering and limits, and records every write so tests can
assert on what a service persisted.
"""

import os
import sys
from pathlib import Path

# Add project root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

# Settings are loaded at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from datetime import datetime
from typing import Generator

from tests.factories import (
    PlanFactory,
    ForecastItemFactory,
    FacilityFactory,
)


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data=None, count: int = None):
        self.data = data if data is not None else []
        if count is not None:
            self.count = count
        elif isinstance(self.data, list):
            self.count = len(self.data)
        else:
            self.count = 1 if self.data else 0


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, client: "MockSupabaseClient", table: str, operation: str = "select", payload=None):
        self._client = client
        self._table = table
        self._operation = operation
        self._payload = payload
        self._filters = []
        self._order = None
        self._limit = None
        self._is_single = False

    def select(self, *args, **kwargs):
        return self

    # Filters

    def eq(self, column, value):
        self._filters.append((column, lambda v, expected=value: v == expected))
        return self

    def neq(self, column, value):
        self._filters.append((column, lambda v, expected=value: v != expected))
        return self

    def is_(self, column, value):
        expected = None if value in (None, "null") else value
        self._filters.append((column, lambda v, expected=expected: v is expected or v == expected))
        return self

    def in_(self, column, values):
        allowed = list(values)
        self._filters.append((column, lambda v, allowed=allowed: v in allowed))
        return self

    # Modifiers

    def order(self, column, desc: bool = False, **kwargs):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def range(self, start, end):
        return self

    def single(self):
        self._is_single = True
        return self

    def maybe_single(self):
        self._is_single = True
        return self

    def _matching(self) -> list:
        rows = self._client.rows(self._table)
        return [r for r in rows if all(check(r.get(col)) for col, check in self._filters)]

    def execute(self) -> MockSupabaseResponse:
        if self._client.fail_on == self._table:
            raise RuntimeError(f"connection lost on {self._table}")

        if self._operation == "insert":
            rows = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = []
            for row in rows:
                stored = {"id": f"{self._table}-new-{len(self._client.inserts) + 1}", **row}
                stored.setdefault("created_at", datetime.utcnow().isoformat() + "Z")
                self._client.rows(self._table).append(stored)
                self._client.inserts.append((self._table, row))
                inserted.append(stored)
            return MockSupabaseResponse(data=inserted)

        matching = self._matching()

        if self._operation == "update":
            for row in matching:
                row.update(self._payload)
            self._client.updates.append((self._table, self._payload, len(matching)))
            return MockSupabaseResponse(data=matching)

        if self._order is not None:
            column, desc = self._order
            matching = sorted(matching, key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        if self._limit is not None:
            matching = matching[:self._limit]

        if self._is_single:
            return MockSupabaseResponse(data=matching[0] if matching else None)
        return MockSupabaseResponse(data=[dict(r) for r in matching])


class MockSupabaseTable:
    """Mock Supabase table."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self._client = client
        self._name = name

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._client, self._name)

    def insert(self, data):
        return MockSupabaseQuery(self._client, self._name, "insert", data)

    def update(self, data):
        return MockSupabaseQuery(self._client, self._name, "update", data)


class MockSupabaseClient:
    """Mock Supabase client with in-memory tables."""

    def __init__(self):
        self._tables: dict[str, list] = {}
        self.inserts: list = []
        self.updates: list = []
        self.fail_on = None

    def set_table_data(self, table_name: str, data: list):
        """Configure rows for a table."""
        self._tables[table_name] = [dict(row) for row in data]

    def rows(self, table_name: str) -> list:
        return self._tables.setdefault(table_name, [])

    def table(self, name: str) -> MockSupabaseTable:
        return MockSupabaseTable(self, name)

    def updates_for(self, table_name: str) -> list:
        return [payload for table, payload, _count in self.updates if table == table_name]


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("facilities", [...])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any WastePlanService created inside the test uses the mock.
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.waste_plan_service.get_supabase_client", return_value=mock_supabase):
            yield mock_supabase


@pytest.fixture
def project_id() -> str:
    return "project-1"


@pytest.fixture
def seeded_project(mock_supabase, project_id) -> MockSupabaseClient:
    """
    Project in Canterbury with three streams, forecast items, two
    facilities and cached distances.
    """
    mock_supabase.set_table_data("projects", [{
        "id": project_id,
        "region": "Canterbury",
        "primary_waste_contractor_partner_id": "partner-a",
    }])
    mock_supabase.set_table_data("swmp_inputs", [{
        "id": "inputs-1",
        "project_id": project_id,
        "created_at": "2026-01-10T09:00:00Z",
        "inputs": {
            "project_name": "Riccarton Rd",
            "waste_streams": ["Metals", "Timber (untreated)", "Mixed C&D"],
            "waste_stream_plans": [
                PlanFactory.create(category="Metals", manual_qty=2, unit="t", intended_outcomes=["Recycle"]),
                PlanFactory.create(category="Timber (untreated)", manual_qty=3, unit="t", intended_outcomes=["Reuse"]),
                PlanFactory.create(category="Mixed C&D", manual_qty=5, unit="t", intended_outcomes=["Landfill"]),
            ],
        },
    }])
    mock_supabase.set_table_data("project_forecast_items", [
        ForecastItemFactory.create(id="item-1", project_id=project_id, quantity=10, unit="t",
                                   excess_percent=10, waste_stream_key="Metals"),
        ForecastItemFactory.create(id="item-2", project_id=project_id, quantity=500, unit="kg",
                                   excess_percent=20, waste_stream_key="Metals"),
        ForecastItemFactory.create(id="item-3", project_id=project_id, quantity=4, unit="t",
                                   excess_percent=5, waste_stream_key=None),
        ForecastItemFactory.create(id="item-4", project_id=project_id, quantity=100, unit="m",
                                   excess_percent=10, waste_stream_key="Timber (untreated)"),
    ])
    mock_supabase.set_table_data("facilities", [
        FacilityFactory.create(id="fac-a", name="North Metals", partner_id="partner-a",
                               accepted_streams=["Metals"]),
        FacilityFactory.create(id="fac-b", name="South Recycling", partner_id="partner-b",
                               accepted_streams=["Metals", "Timber (untreated)"]),
    ])
    mock_supabase.set_table_data("partners", [
        {"id": "partner-a", "name": "Alpha Waste"},
        {"id": "partner-b", "name": "Beta Recovery"},
    ])
    mock_supabase.set_table_data("project_facility_distances", [
        {"project_id": project_id, "facility_id": "fac-a", "stream": None,
         "distance_m": 12300, "duration_s": 900},
        {"project_id": project_id, "facility_id": "fac-b", "stream": None,
         "distance_m": 8000, "duration_s": 600},
    ])
    mock_supabase.set_table_data("project_strategy_recommendations", [
        {
            "id": "rec-1",
            "project_id": project_id,
            "title": "Separate metals",
            "category": "segregation",
            "priority": "high",
            "created_at": "2026-01-10T10:00:00Z",
            "apply_action": {"type": "mark_stream_separate", "payload": {"stream_name": "Metals"}},
        },
        {
            "id": "rec-2",
            "project_id": project_id,
            "title": "Send metals to South Recycling",
            "category": "facility",
            "priority": "medium",
            "created_at": "2026-01-10T10:01:00Z",
            "apply_action": {"type": "set_facility", "payload": {"stream_name": "Metals", "facility_id": "fac-b"}},
        },
        {
            "id": "rec-3",
            "project_id": project_id,
            "title": "Review site layout",
            "category": "other",
            "priority": "low",
            "created_at": "2026-01-10T10:02:00Z",
            "apply_action": None,
        },
    ])
    return mock_supabase


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(mock_db):
    """
    Create FastAPI test client with mocked database.

    Usage:
        def test_endpoint(test_client_with_mock_db, seeded_project):
            response = test_client_with_mock_db.get("/api/projects/project-1/diversion")
    """
    from fastapi.testclient import TestClient
    from main import app
    from services.waste_plan_service import WastePlanService

    service = WastePlanService()
    with patch("routes.projects.get_waste_plan_service", return_value=service):
        with patch("routes.catalog.get_waste_plan_service", return_value=service):
            with patch("main.check_connection", return_value={"status": "healthy"}):
                yield TestClient(app)

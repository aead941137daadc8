"""Shared test fixtures for the lead pipeline test suite."""

import copy
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

import psycopg2
import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
# override=True ensures .env takes precedence over shell env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from core.config import PipelineConfig
from core.event_bus import EventBus
from core.models import LeadCreate, Stage
from core.services.activity_service import ActivityService
from core.services.lead_action_service import LeadActionService
from core.services.lead_details_service import LeadDetailsService
from core.services.lead_service import LeadService
from core.services.lost_reason_service import LostReasonService
from core.store import SIDE_TABLES, LeadStore, _LEAD_COLUMNS


# =============================================================================
# CLOCK
# =============================================================================

# Wednesday mid-afternoon UTC
NOW = datetime(2025, 3, 12, 15, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


# =============================================================================
# IN-MEMORY STORE
# =============================================================================


class InMemoryLeadStore:
    """
    Dict-backed stand-in for LeadStore.

    transaction() snapshots every table and restores the snapshot if the
    block raises, so atomicity is observable. Set ``fail_on`` to a session
    method name to make that call raise.
    """

    def __init__(self):
        self.tables = {
            "leads": {},
            "stage_history": [],
            "activities": {},
            **{table: {} for table in SIDE_TABLES},
        }
        self.fail_on: str | None = None
        self.commits = 0
        self.rollbacks = 0
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self):
        with self._lock:
            snapshot = copy.deepcopy(self.tables)
            try:
                yield InMemoryLeadStoreSession(self)
            except Exception:
                self.tables = snapshot
                self.rollbacks += 1
                raise
            self.commits += 1


class InMemoryLeadStoreSession:
    """Mirrors LeadStoreSession over InMemoryLeadStore.tables."""

    def __init__(self, store: InMemoryLeadStore):
        self.store = store

    @property
    def _t(self) -> dict:
        return self.store.tables

    def _maybe_fail(self, name: str) -> None:
        if self.store.fail_on == name:
            raise RuntimeError(f"injected failure in {name}")

    # Leads

    def get_lead(self, lead_id, for_update=False):
        row = self._t["leads"].get(lead_id)
        return dict(row) if row else None

    def insert_lead(self, row):
        self._maybe_fail("insert_lead")
        self._t["leads"][row["id"]] = {c: row[c] for c in _LEAD_COLUMNS}
        return dict(self._t["leads"][row["id"]])

    def update_lead(self, lead_id, fields):
        self._maybe_fail("update_lead")
        unknown = set(fields) - set(_LEAD_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown lead columns: {', '.join(sorted(unknown))}")
        row = self._t["leads"].get(lead_id)
        if row is None:
            return None
        row.update(fields)
        return dict(row)

    def delete_lead(self, lead_id):
        if self._t["leads"].pop(lead_id, None) is None:
            return False
        self._t["stage_history"] = [
            h for h in self._t["stage_history"] if h["lead_id"] != lead_id
        ]
        self._t["activities"] = {
            k: a for k, a in self._t["activities"].items() if a["lead_id"] != lead_id
        }
        for table in SIDE_TABLES:
            self._t[table].pop(lead_id, None)
        return True

    def list_follow_up_candidates(self):
        rows = [
            dict(r) for r in self._t["leads"].values()
            if not r["is_archived"]
            and r["next_follow_up_date"] is not None
            and r["current_stage"] not in ("CLOSED_WON", "CLOSED_LOST")
        ]
        return sorted(rows, key=lambda r: r["next_follow_up_date"])

    def list_next_action_leads(self):
        rows = [
            dict(r) for r in self._t["leads"].values()
            if not r["is_archived"] and r["next_action_due_date"] is not None
        ]
        return sorted(rows, key=lambda r: r["next_action_due_date"])

    def list_unscheduled_leads(self):
        excluded = ("CLOSED_WON", "CLOSED_LOST", "NURTURE_30_DAY", "NURTURE_90_DAY")
        rows = [
            dict(r) for r in self._t["leads"].values()
            if not r["is_archived"]
            and r["current_stage"] not in excluded
            and (r["next_action_due_date"] is None or r["next_follow_up_date"] is None)
        ]
        return sorted(rows, key=lambda r: r["updated_at"], reverse=True)

    def list_archived_leads(self):
        rows = [dict(r) for r in self._t["leads"].values() if r["is_archived"]]
        return sorted(rows, key=lambda r: r["archived_at"], reverse=True)

    # Stage history

    def insert_stage_history(self, row):
        self._maybe_fail("insert_stage_history")
        self._t["stage_history"].append(dict(row))
        return dict(row)

    def list_stage_history(self, lead_id):
        rows = [dict(h) for h in self._t["stage_history"] if h["lead_id"] == lead_id]
        return sorted(rows, key=lambda r: r["changed_at"])

    # Activities

    def insert_activity(self, row):
        self._maybe_fail("insert_activity")
        self._t["activities"][row["id"]] = dict(row)
        return dict(row)

    def get_activity(self, activity_id):
        row = self._t["activities"].get(activity_id)
        return dict(row) if row else None

    def complete_activity(self, activity_id, completed_at):
        row = self._t["activities"].get(activity_id)
        if row is None:
            return None
        row.update(completed=True, completed_at=completed_at)
        return dict(row)

    def list_activities(self, lead_id):
        rows = [dict(a) for a in self._t["activities"].values() if a["lead_id"] == lead_id]
        return sorted(rows, key=lambda r: r["created_at"], reverse=True)

    def list_recent_activities(self, lead_ids, limit):
        if limit <= 0:
            return {lead_id: [] for lead_id in lead_ids}
        return {lead_id: self.list_activities(lead_id)[:limit] for lead_id in lead_ids}

    # Side records

    def get_side_record(self, table, lead_id):
        if table not in SIDE_TABLES:
            raise ValueError(f"Unknown side table '{table}'")
        row = self._t[table].get(lead_id)
        return dict(row) if row else None

    def upsert_side_record(self, table, lead_id, fields, now):
        self._maybe_fail(f"upsert_side_record:{table}")
        if table not in SIDE_TABLES:
            raise ValueError(f"Unknown side table '{table}'")
        existing = self._t[table].get(lead_id)
        row = {"lead_id": lead_id, **{c: fields.get(c) for c in SIDE_TABLES[table]}}
        row["created_at"] = existing["created_at"] if existing else now
        row["updated_at"] = now
        self._t[table][lead_id] = row
        return dict(row)


@pytest.fixture
def store() -> InMemoryLeadStore:
    return InMemoryLeadStore()


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

SCHEMA_PATH = Path(__file__).parent.parent / "schema.sql"

PIPELINE_TABLES = (
    "leads", "stage_history", "activities",
    "lost_reasons", "organization_info", "demo_details", "proposals",
)


@pytest.fixture(scope="session")
def db():
    """
    Session-scoped PostgresClient with schema.sql applied.

    The URL comes from Vault like the application's. Tests that use this
    fixture are skipped when Vault or PostgreSQL is not reachable.
    """
    from clients.postgres_client import PostgresClient
    from clients.vault_client import get_database_url

    try:
        database_url = get_database_url()
    except (ValueError, PermissionError, KeyError) as e:
        pytest.skip(f"No pipeline database configured: {e}")

    try:
        client = PostgresClient(database_url)
    except psycopg2.OperationalError as e:
        pytest.skip(f"PostgreSQL not reachable: {e}")

    client.execute(SCHEMA_PATH.read_text())
    yield client
    client.close()


@pytest.fixture
def pg_store(db) -> LeadStore:
    """LeadStore over the test database, emptied before each test."""
    db.execute(f"TRUNCATE {', '.join(PIPELINE_TABLES)} CASCADE")
    return LeadStore(db)


# =============================================================================
# SERVICES
# =============================================================================


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def published(event_bus) -> list:
    """Every event published on event_bus, in order."""
    received = []
    for name in (
        "LeadCreated", "LeadStageChanged", "LeadClosedWon",
        "LeadClosedLost", "LeadMovedToNurture",
    ):
        event_bus.subscribe(name, received.append)
    return received


@pytest.fixture
def lead_service(store, config, event_bus, clock) -> LeadService:
    return LeadService(store, config, event_bus, clock=clock)


@pytest.fixture
def action_service(store, config, event_bus, clock) -> LeadActionService:
    return LeadActionService(store, config, event_bus, clock=clock)


@pytest.fixture
def activity_service(store, clock) -> ActivityService:
    return ActivityService(store, clock=clock)


@pytest.fixture
def details_service(store, clock) -> LeadDetailsService:
    return LeadDetailsService(store, clock=clock)


@pytest.fixture
def lost_reason_service(store, clock) -> LostReasonService:
    return LostReasonService(store, clock=clock)


# =============================================================================
# LEAD FACTORIES
# =============================================================================


@pytest.fixture
def make_lead(lead_service):
    """Create a lead through LeadService; keyword args override defaults."""
    def _make(**overrides):
        data = {
            "company_name": "Acme Rentals",
            "contact_name": "Dana Reyes",
            "email": "dana@acme.example",
            "phone": "555-0100",
        }
        data.update(overrides)
        return lead_service.create(LeadCreate(**data))
    return _make


@pytest.fixture
def put_lead(store):
    """Overwrite stored lead columns directly, bypassing the engine."""
    def _put(lead_id, **fields):
        if isinstance(fields.get("current_stage"), Stage):
            fields["current_stage"] = fields["current_stage"].value
        store.tables["leads"][lead_id].update(fields)
    return _put

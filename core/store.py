"""
PostgreSQL persistence for the lead pipeline.

All reads and writes go through a LeadStoreSession obtained from
LeadStore.transaction(). A session is one database transaction: the
statements issued through it commit together or not at all.

Per-lead serialization: get_lead(..., for_update=True) takes a row lock
(SELECT ... FOR UPDATE) that is held until the session ends, so two
transitions on the same lead cannot interleave their read-then-write.
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator
from uuid import UUID

from clients.postgres_client import PostgresClient, Transaction

logger = logging.getLogger(__name__)

Row = dict[str, Any]

_LEAD_COLUMNS = (
    "id", "company_name", "contact_name", "contact_title", "phone", "email",
    "company_description", "lead_source", "current_stage", "estimated_value",
    "next_follow_up_date", "last_activity_date",
    "next_action_type", "next_action_description", "next_action_due_date",
    "is_archived", "archived_at", "archive_reason", "created_at", "updated_at",
)

_ACTIVITY_COLUMNS = (
    "id", "lead_id", "type", "subject", "notes",
    "completed", "completed_at", "due_date", "created_at",
)

_HISTORY_COLUMNS = ("id", "lead_id", "from_stage", "to_stage", "changed_at", "note")

# 1:1 side tables keyed by lead_id, with the columns each one replaces on upsert
SIDE_TABLES = {
    "lost_reasons": ("reason", "competitor_name", "lost_date", "notes"),
    "organization_info": (
        "employee_count", "annual_revenue", "industry", "decision_maker",
        "decision_maker_role", "current_solution", "pain_points", "budget", "timeline",
    ),
    "demo_details": (
        "demo_date", "demo_type", "attendees", "demo_outcome",
        "user_count_estimate", "follow_up_required", "notes",
    ),
    "proposals": (
        "proposal_date", "estimated_value", "products", "contract_term", "status", "notes",
    ),
}

_CLOSED_STAGE_VALUES = ["CLOSED_WON", "CLOSED_LOST"]
_NURTURE_STAGE_VALUES = ["NURTURE_30_DAY", "NURTURE_90_DAY"]


def _insert_sql(table: str, columns: tuple[str, ...]) -> str:
    return (
        f"INSERT INTO {table} ({', '.join(columns)}) "
        f"VALUES ({', '.join(['%s'] * len(columns))}) RETURNING *"
    )


class LeadStoreSession:
    """Typed statements for one transaction."""

    def __init__(self, tx: Transaction):
        self.tx = tx

    # -------------------------------------------------------------------------
    # Leads
    # -------------------------------------------------------------------------

    def get_lead(self, lead_id: UUID, for_update: bool = False) -> Row | None:
        query = "SELECT * FROM leads WHERE id = %s"
        if for_update:
            query += " FOR UPDATE"
        return self.tx.execute_single(query, (lead_id,))

    def insert_lead(self, row: Row) -> Row:
        return self.tx.execute_single(
            _insert_sql("leads", _LEAD_COLUMNS),
            tuple(row[c] for c in _LEAD_COLUMNS),
        )

    def update_lead(self, lead_id: UUID, fields: Row) -> Row:
        unknown = set(fields) - set(_LEAD_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown lead columns: {', '.join(sorted(unknown))}")

        set_parts = [f"{field} = %s" for field in fields]
        params = list(fields.values()) + [lead_id]

        return self.tx.execute_single(
            f"UPDATE leads SET {', '.join(set_parts)} WHERE id = %s RETURNING *",
            tuple(params),
        )

    def delete_lead(self, lead_id: UUID) -> bool:
        """Hard delete. Owned rows go with it via ON DELETE CASCADE."""
        row = self.tx.execute_single(
            "DELETE FROM leads WHERE id = %s RETURNING id", (lead_id,)
        )
        return row is not None

    def list_follow_up_candidates(self) -> list[Row]:
        """Active (non-archived, non-closed) leads with a follow-up date, soonest first."""
        return self.tx.execute(
            """
            SELECT * FROM leads
            WHERE is_archived = false
              AND next_follow_up_date IS NOT NULL
              AND current_stage <> ALL(%s)
            ORDER BY next_follow_up_date ASC
            """,
            (_CLOSED_STAGE_VALUES,),
        )

    def list_next_action_leads(self) -> list[Row]:
        """Non-archived leads with a next action due date, soonest first. Includes closed leads."""
        return self.tx.execute(
            """
            SELECT * FROM leads
            WHERE is_archived = false
              AND next_action_due_date IS NOT NULL
            ORDER BY next_action_due_date ASC
            """
        )

    def list_unscheduled_leads(self) -> list[Row]:
        """Open, non-nurture leads missing a next action or a follow-up."""
        return self.tx.execute(
            """
            SELECT * FROM leads
            WHERE is_archived = false
              AND current_stage <> ALL(%s)
              AND (next_action_due_date IS NULL OR next_follow_up_date IS NULL)
            ORDER BY updated_at DESC
            """,
            (_CLOSED_STAGE_VALUES + _NURTURE_STAGE_VALUES,),
        )

    def list_archived_leads(self) -> list[Row]:
        return self.tx.execute(
            "SELECT * FROM leads WHERE is_archived = true ORDER BY archived_at DESC"
        )

    # -------------------------------------------------------------------------
    # Stage history
    # -------------------------------------------------------------------------

    def insert_stage_history(self, row: Row) -> Row:
        return self.tx.execute_single(
            _insert_sql("stage_history", _HISTORY_COLUMNS),
            tuple(row[c] for c in _HISTORY_COLUMNS),
        )

    def list_stage_history(self, lead_id: UUID) -> list[Row]:
        return self.tx.execute(
            """
            SELECT * FROM stage_history
            WHERE lead_id = %s
            ORDER BY changed_at ASC, seq ASC
            """,
            (lead_id,),
        )

    # -------------------------------------------------------------------------
    # Activities
    # -------------------------------------------------------------------------

    def insert_activity(self, row: Row) -> Row:
        return self.tx.execute_single(
            _insert_sql("activities", _ACTIVITY_COLUMNS),
            tuple(row[c] for c in _ACTIVITY_COLUMNS),
        )

    def get_activity(self, activity_id: UUID) -> Row | None:
        return self.tx.execute_single(
            "SELECT * FROM activities WHERE id = %s", (activity_id,)
        )

    def complete_activity(self, activity_id: UUID, completed_at) -> Row | None:
        return self.tx.execute_single(
            """
            UPDATE activities
            SET completed = true, completed_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (completed_at, activity_id),
        )

    def list_activities(self, lead_id: UUID) -> list[Row]:
        return self.tx.execute(
            "SELECT * FROM activities WHERE lead_id = %s ORDER BY created_at DESC",
            (lead_id,),
        )

    def list_recent_activities(self, lead_ids: list[UUID], limit: int) -> dict[UUID, list[Row]]:
        """Newest ``limit`` activities per lead, keyed by lead id."""
        result: dict[UUID, list[Row]] = {lead_id: [] for lead_id in lead_ids}
        if not lead_ids or limit <= 0:
            return result

        rows = self.tx.execute(
            """
            SELECT * FROM (
                SELECT a.*, row_number() OVER (
                    PARTITION BY a.lead_id ORDER BY a.created_at DESC
                ) AS rn
                FROM activities a
                WHERE a.lead_id = ANY(%s::uuid[])
            ) ranked
            WHERE rn <= %s
            ORDER BY lead_id, created_at DESC
            """,
            (list(lead_ids), limit),
        )

        for row in rows:
            row.pop("rn", None)
            result.setdefault(UUID(str(row["lead_id"])), []).append(row)
        return result

    # -------------------------------------------------------------------------
    # 1:1 side records
    # -------------------------------------------------------------------------

    def get_side_record(self, table: str, lead_id: UUID) -> Row | None:
        if table not in SIDE_TABLES:
            raise ValueError(f"Unknown side table '{table}'")
        return self.tx.execute_single(
            f"SELECT * FROM {table} WHERE lead_id = %s", (lead_id,)
        )

    def upsert_side_record(self, table: str, lead_id: UUID, fields: Row, now) -> Row:
        """Create or replace the table's row for this lead."""
        if table not in SIDE_TABLES:
            raise ValueError(f"Unknown side table '{table}'")

        columns = SIDE_TABLES[table]
        values = [fields.get(c) for c in columns]
        updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in columns)

        return self.tx.execute_single(
            f"""
            INSERT INTO {table} (lead_id, {', '.join(columns)}, created_at, updated_at)
            VALUES (%s, {', '.join(['%s'] * len(columns))}, %s, %s)
            ON CONFLICT (lead_id) DO UPDATE
            SET {updates}, updated_at = EXCLUDED.updated_at
            RETURNING *
            """,
            (lead_id, *values, now, now),
        )


class LeadStore:
    """Entry point for pipeline persistence."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    @contextmanager
    def transaction(self) -> Iterator[LeadStoreSession]:
        """Open a session; commits on normal exit, rolls back on exception."""
        with self.postgres.transaction() as tx:
            yield LeadStoreSession(tx)

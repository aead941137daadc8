"""
Activity service for logged interactions.

Logging an activity stamps the lead's last_activity_date in the same
transaction. Transition actions write their NOTE activities through
new_activity_row() so every activity row has one shape.
"""

import logging
from datetime import datetime
from typing import Callable
from uuid import UUID, uuid4

from core.exceptions import LeadNotFoundError
from core.models import Activity, ActivityCreate, ActivityType
from core.store import LeadStore
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


def new_activity_row(
    lead_id: UUID,
    type: ActivityType,
    subject: str,
    now: datetime,
    notes: str | None = None,
    due_date: datetime | None = None,
    completed: bool = False,
) -> dict:
    """Row for the activities table."""
    return {
        "id": uuid4(),
        "lead_id": lead_id,
        "type": type.value,
        "subject": subject,
        "notes": notes,
        "completed": completed,
        "completed_at": now if completed else None,
        "due_date": due_date,
        "created_at": now,
    }


class ActivityService:
    """Service for activity operations."""

    def __init__(self, store: LeadStore, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.clock = clock

    def log(self, lead_id: UUID, data: ActivityCreate) -> Activity:
        """
        Log an activity against a lead.

        Args:
            lead_id: Lead UUID
            data: Activity data

        Returns:
            Created activity

        Raises:
            LeadNotFoundError: If lead does not exist
        """
        now = self.clock()

        with self.store.transaction() as session:
            if session.get_lead(lead_id, for_update=True) is None:
                raise LeadNotFoundError(lead_id)

            row = session.insert_activity(new_activity_row(
                lead_id, data.type, data.subject, now,
                notes=data.notes, due_date=data.due_date,
            ))
            session.update_lead(lead_id, {"last_activity_date": now, "updated_at": now})

        return Activity.model_validate(row)

    def complete(self, activity_id: UUID, lead_id: UUID | None = None) -> Activity:
        """
        Mark an activity completed.

        Args:
            activity_id: Activity UUID
            lead_id: When given, the activity must belong to this lead

        Raises:
            ValueError: If activity not found or already completed
        """
        with self.store.transaction() as session:
            current = session.get_activity(activity_id)
            if current is None or (lead_id is not None and str(current["lead_id"]) != str(lead_id)):
                raise ValueError(f"Activity {activity_id} not found")
            if current["completed"]:
                raise ValueError(f"Activity {activity_id} already completed")

            row = session.complete_activity(activity_id, self.clock())

        return Activity.model_validate(row)

    def list_for_lead(self, lead_id: UUID) -> list[Activity]:
        """List a lead's activities, newest first."""
        with self.store.transaction() as session:
            rows = session.list_activities(lead_id)

        return [Activity.model_validate(row) for row in rows]

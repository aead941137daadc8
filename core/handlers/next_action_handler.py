"""
Handler for events that schedule a next action (close-won, close-lost, nurture).

Turns the lead's next_action_* fields into an open activity so the
handoff, recheck or nurture check-in shows up in the lead's activity list.
"""

import logging
from typing import Callable

from core.events import LeadEvent
from core.models import ActivityCreate

logger = logging.getLogger(__name__)

NEXT_ACTION_EVENTS = ("LeadClosedWon", "LeadClosedLost", "LeadMovedToNurture")


def handle_next_action_scheduled(activity_service) -> Callable:
    """
    Factory that returns a handler for next-action events.

    Args:
        activity_service: ActivityService instance

    Returns:
        Handler callable that logs an open activity for the lead's next action
    """

    def handler(event: LeadEvent):
        lead = event.lead
        if lead.next_action_type is None or lead.next_action_description is None:
            return

        activity = activity_service.log(lead.id, ActivityCreate(
            type=lead.next_action_type,
            subject=lead.next_action_description,
            due_date=lead.next_action_due_date,
        ))
        logger.info(f"Scheduled {activity.type.value} activity {activity.id} for lead {lead.id}")

    return handler


def register_next_action_handler(event_bus, activity_service) -> None:
    """Subscribe the next-action handler to every event that sets a next action."""
    handler = handle_next_action_scheduled(activity_service)
    for event_type in NEXT_ACTION_EVENTS:
        event_bus.subscribe(event_type, handler)

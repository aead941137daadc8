"""Application factory: wires config, persistence, services and routes."""

import logging

from fastapi import FastAPI

from api.errors import register_error_handlers
from api.leads import create_leads_router
from api.middleware import RequestIDMiddleware
from core.config import PipelineConfig, load_config
from core.event_bus import EventBus
from core.handlers.next_action_handler import register_next_action_handler
from core.services.activity_service import ActivityService
from core.services.lead_action_service import LeadActionService
from core.services.lead_details_service import LeadDetailsService
from core.services.lead_service import LeadService
from core.services.lost_reason_service import LostReasonService
from core.store import LeadStore

logger = logging.getLogger(__name__)


def build_services(
    store: LeadStore,
    config: PipelineConfig,
    event_bus: EventBus | None = None,
    **kwargs,
) -> dict:
    """
    Construct every service over one store and subscribe event handlers.

    Extra kwargs (e.g. clock) pass through to the services.
    """
    services = {
        "lead": LeadService(store, config, event_bus, **kwargs),
        "lead_action": LeadActionService(store, config, event_bus, **kwargs),
        "activity": ActivityService(store, **kwargs),
        "lead_details": LeadDetailsService(store, **kwargs),
        "lost_reason": LostReasonService(store, **kwargs),
    }

    if event_bus is not None:
        register_next_action_handler(event_bus, services["activity"])

    return services


def create_app(services: dict | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    Without services, connects to PostgreSQL using the URL stored in Vault
    and reads PIPELINE_* settings from the environment.
    """
    if services is None:
        from clients.postgres_client import PostgresClient
        from clients.vault_client import get_database_url

        config = load_config()
        store = LeadStore(PostgresClient(get_database_url()))
        services = build_services(store, config, EventBus())
        logger.info(f"Pipeline services ready (timezone={config.business_timezone})")

    app = FastAPI(title="Lead Pipeline API")
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)
    app.include_router(create_leads_router(services), prefix="/api")

    return app

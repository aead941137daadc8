"""API test fixtures - TestClient over the in-memory store."""

import pytest
from starlette.testclient import TestClient

from main import build_services, create_app


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def services(store, config, event_bus, clock):
    return build_services(store, config, event_bus, clock=clock)


@pytest.fixture
def app(services):
    """Full app: middleware, error handlers and /api/leads routes."""
    return create_app(services)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def created_lead(client):
    """POST a lead and return its response data."""
    response = client.post("/api/leads", json={
        "company_name": "Acme Rentals",
        "contact_name": "Dana Reyes",
        "email": "dana@acme.example",
        "phone": "555-0100",
    })
    assert response.status_code == 201
    return response.json()["data"]

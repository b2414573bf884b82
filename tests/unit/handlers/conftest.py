"""
Module: conftest.py
Description: Fixtures for API handler tests.

Builds the FastAPI test client around a DeliveryManager that uses the
moto-backed store and a mocked sender. Startup events are not run;
the components are injected through dependency overrides instead.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from tweet_webhooks.delivery.manager import DeliveryManager
from tweet_webhooks.delivery.queue import RetryQueue
from tweet_webhooks.handlers.dependencies import get_delivery_manager, get_webhook_store
from tweet_webhooks.main import app
from tweet_webhooks.models.delivery import DeliveryResult


@pytest.fixture
def sender():
    mock = AsyncMock()
    mock.send.return_value = DeliveryResult(success=True, status=200, response_text="ok")
    mock.test.return_value = DeliveryResult(success=True, status=200, response_text="ok")
    return mock


@pytest.fixture
def manager(store, sender, clock):
    return DeliveryManager(
        store,
        sender,
        queue=RetryQueue(sender, store, clock=clock),
        clock=clock
    )


@pytest.fixture
def client(manager, store):
    """Create FastAPI test client with the test components injected."""
    app.dependency_overrides[get_delivery_manager] = lambda: manager
    app.dependency_overrides[get_webhook_store] = lambda: store
    app.state.delivery_manager = manager

    try:
        yield TestClient(app)
    finally:
        # Clean up overrides
        app.dependency_overrides = {}
        manager.stop_queue()


@pytest.fixture
def create_webhook(client):
    """Create a config through the API and return its JSON."""
    def _create(**overrides):
        body = {
            "name": "Likes to n8n",
            "url": "https://n8n.example.com/webhook/likes",
            "events": ["like"],
        }
        body.update(overrides)
        response = client.post("/webhooks", json=body)
        assert response.status_code == 201, response.text
        return response.json()

    return _create

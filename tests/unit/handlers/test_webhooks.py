"""
Module: test_webhooks.py
Description: Unit tests for webhook config handlers.

Tests the /webhooks endpoints through the FastAPI test client.
Covers creation, validation errors, reads, partial updates,
deletion, connectivity tests and the health check.
"""

import asyncio
from unittest.mock import patch

from tweet_webhooks.models.delivery import DeliveryResult


class TestCreateWebhook:
    """Test cases for POST /webhooks."""

    def test_create_success(self, client, manager, store):
        """Test a valid config is stored and mirrored."""
        response = client.post("/webhooks", json={
            "name": "Bookmarks",
            "url": "https://hooks.example.com/bookmarks",
            "events": ["bookmark", "bookmark", "view"],
            "headers": {"Authorization": "Bearer abc"},
            "max_retries": 5
        })

        assert response.status_code == 201
        data = response.json()
        assert data["id"].startswith("webhook-config-")
        assert data["enabled"] is True
        assert data["events"] == ["bookmark", "view"]
        assert data["retry_on_failure"] is True
        assert data["max_retries"] == 5
        assert data["created_at"] == data["updated_at"]

        assert manager.get_config(data["id"]) is not None
        stored = asyncio.run(store.get_config(data["id"]))
        assert stored.headers == {"Authorization": "Bearer abc"}

    def test_create_validation_errors(self, client):
        """Test invalid bodies are rejected with 400."""
        invalid_requests = [
            {"url": "https://hooks.example.com"},  # Missing name
            {"name": "x"},  # Missing url
            {"name": "x", "url": "ftp://hooks.example.com"},
            {"name": "x", "url": "https://hooks.example.com", "events": ["retweet"]},
            {"name": "x", "url": "https://hooks.example.com", "max_retries": 21},
            {"name": "", "url": "https://hooks.example.com"},
        ]

        for body in invalid_requests:
            response = client.post("/webhooks", json=body)

            assert response.status_code == 400, body
            error = response.json()["error"]
            assert error["type"] == "validation_error"
            assert error["details"]

    def test_create_storage_failure(self, client, manager):
        with patch.object(manager.store, 'put_config', return_value=False):
            response = client.post("/webhooks", json={
                "name": "x",
                "url": "https://hooks.example.com"
            })

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Failed to create webhook config"


class TestReadWebhooks:
    """Test cases for GET /webhooks and GET /webhooks/{id}."""

    def test_list(self, client, create_webhook):
        first = create_webhook(name="First")
        second = create_webhook(name="Second", enabled=False)

        response = client.get("/webhooks")

        assert response.status_code == 200
        assert {c["id"] for c in response.json()} == {first["id"], second["id"]}

    def test_list_empty(self, client):
        response = client.get("/webhooks")

        assert response.status_code == 200
        assert response.json() == []

    def test_get(self, client, create_webhook):
        created = create_webhook()

        response = client.get(f"/webhooks/{created['id']}")

        assert response.status_code == 200
        assert response.json() == created

    def test_get_missing(self, client):
        response = client.get("/webhooks/webhook-config-missing")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == 404
        assert error["type"] == "http_exception"


class TestUpdateWebhook:
    """Test cases for PATCH /webhooks/{id}."""

    def test_partial_update(self, client, create_webhook, manager):
        created = create_webhook()

        response = client.patch(f"/webhooks/{created['id']}", json={
            "enabled": False,
            "events": ["view"]
        })

        assert response.status_code == 200
        data = response.json()
        assert data["enabled"] is False
        assert data["events"] == ["view"]
        assert data["name"] == created["name"]
        assert data["updated_at"] >= created["updated_at"]
        assert manager.get_configs_for_event("view") == []

    def test_empty_update(self, client, create_webhook):
        created = create_webhook()

        response = client.patch(f"/webhooks/{created['id']}", json={})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "No fields to update"

    def test_update_missing(self, client):
        response = client.patch("/webhooks/webhook-config-missing", json={"name": "x"})

        assert response.status_code == 404

    def test_update_invalid_url(self, client, create_webhook):
        created = create_webhook()

        response = client.patch(f"/webhooks/{created['id']}", json={"url": "not-a-url"})

        assert response.status_code == 400


class TestDeleteWebhook:
    """Test cases for DELETE /webhooks/{id}."""

    def test_delete(self, client, create_webhook, manager):
        created = create_webhook()

        response = client.delete(f"/webhooks/{created['id']}")

        assert response.status_code == 204
        assert manager.get_config(created["id"]) is None
        assert client.get(f"/webhooks/{created['id']}").status_code == 404

    def test_delete_missing(self, client):
        response = client.delete("/webhooks/webhook-config-missing")

        assert response.status_code == 404


class TestWebhookTest:
    """Test cases for POST /webhooks/test."""

    def test_success(self, client, sender):
        response = client.post("/webhooks/test", json={
            "url": "https://hooks.example.com/probe",
            "headers": {"X-Token": "t"}
        })

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Webhook test successful (HTTP 200)"
        }
        sender.test.assert_awaited_once_with("https://hooks.example.com/probe", {"X-Token": "t"})

    def test_failure_reported_in_body(self, client, sender):
        sender.test.return_value = DeliveryResult(
            success=False,
            error="Network error: Connection refused"
        )

        response = client.post("/webhooks/test", json={"url": "https://hooks.example.com/probe"})

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "message": "Network error: Connection refused"
        }

    def test_invalid_url(self, client):
        response = client.post("/webhooks/test", json={"url": "hooks.example.com"})

        assert response.status_code == 400


class TestHealth:
    """Test cases for GET /health."""

    def test_health(self, client, create_webhook):
        create_webhook()

        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["retry_queue_size"] == 0
        assert data["configs_loaded"] == 1

"""
Module: dependencies.py
Description: FastAPI dependencies for handler injection.

Components are built once at startup and stored on app.state; these
functions hand them to the routers and are what tests override.
"""

from fastapi import Request

from tweet_webhooks.delivery.manager import DeliveryManager
from tweet_webhooks.storage.dynamodb import WebhookStore


def get_delivery_manager(request: Request) -> DeliveryManager:
    """Dependency to get the shared DeliveryManager."""
    return request.app.state.delivery_manager


def get_webhook_store(request: Request) -> WebhookStore:
    """Dependency to get the shared WebhookStore."""
    return request.app.state.webhook_store

"""
Module: handlers
Description: Package initialization for API endpoint handlers.

This package contains FastAPI route handlers for the webhook service:
- webhooks: Webhook config management and connectivity tests
- logs: Delivery log inspection and clearing
- events: Event ingest feeding the delivery pipeline

All handlers use dependency injection for the shared components.
"""

__all__ = []

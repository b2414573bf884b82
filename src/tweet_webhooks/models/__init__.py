"""
Module: models
Description: Package initialization for Pydantic data models.

This package contains all data models used by the webhook service:
- WebhookConfig / WebhookLog: Stored configuration and audit records
- WebhookPayload: Wire format posted to endpoints
- DeliveryResult / RetryQueueItem: Delivery pipeline internals
- Request and response models for the operator API

All models are exported here for convenient importing.
"""

from .delivery import DeliveryResult, RetryQueueItem, WebhookTestResult
from .payload import WebhookPayload, WebhookTweetData
from .webhook import WEBHOOK_EVENT_TYPES, WebhookConfig, WebhookLog

__all__ = [
    "WEBHOOK_EVENT_TYPES",
    "WebhookConfig",
    "WebhookLog",
    "WebhookPayload",
    "WebhookTweetData",
    "DeliveryResult",
    "RetryQueueItem",
    "WebhookTestResult",
]

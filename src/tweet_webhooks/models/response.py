"""
Module: response.py
Description: API response models for the webhook operator API.

Key Components:
- WebhookTestResponse: Outcome of POST /webhooks/test
- WebhookLogListResponse: Page of delivery logs
- ClearLogsResponse: Result of a bulk log clear
- TriggerEventResponse: Summary of an ingested event

Dependencies: pydantic, typing
"""

from typing import List

from pydantic import BaseModel, Field

from tweet_webhooks.models.webhook import WebhookLog


class WebhookTestResponse(BaseModel):
    success: bool = Field(..., description="Whether the endpoint answered with 2xx")
    message: str = Field(..., description="HTTP status summary or the delivery error")


class WebhookLogListResponse(BaseModel):
    """
    Page of delivery logs, newest first.

    Attributes:
        logs: Log rows in this page
        total: Total number of stored log rows
        limit: Page size requested
        offset: Rows skipped before this page
    """

    logs: List[WebhookLog] = Field(default_factory=list)
    total: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    offset: int = Field(..., ge=0)


class ClearLogsResponse(BaseModel):
    deleted: int = Field(..., ge=0, description="Number of log rows removed")
    message: str = Field(..., description="Human-readable status message")


class TriggerEventResponse(BaseModel):
    """
    Summary of an ingested event.

    Attributes:
        event_type: Event that was triggered
        tweet_count: Number of tweets in the request
        config_count: Number of enabled configs subscribed to the event
        message: Human-readable status message
    """

    event_type: str
    tweet_count: int = Field(..., ge=0)
    config_count: int = Field(..., ge=0)
    message: str

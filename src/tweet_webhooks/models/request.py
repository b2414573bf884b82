"""
Module: request.py
Description: API request models for the webhook operator API.

Defines request models for incoming API calls. These models handle
input validation for config management, connectivity tests, and
event ingest.

Key Components:
- CreateWebhookConfigRequest: Model for POST /webhooks
- UpdateWebhookConfigRequest: Model for PATCH /webhooks/{id}
- WebhookTestRequest: Model for POST /webhooks/test
- TriggerEventRequest: Model for POST /events/{event_type}

Dependencies: pydantic, typing
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tweet_webhooks.models.webhook import validate_event_type, validate_webhook_url


class CreateWebhookConfigRequest(BaseModel):
    """
    Request model for creating a webhook config.

    Attributes:
        name: Display name (required)
        url: Destination URL (required, http or https)
        enabled: Whether deliveries are active
        events: Event types to subscribe to
        headers: Custom headers sent with every delivery
        retry_on_failure: Whether failures enter the retry queue
        max_retries: Retry attempts allowed after the first failure
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    url: str = Field(..., description="Webhook destination URL")
    enabled: bool = Field(default=True, description="Whether the webhook is enabled")
    events: List[str] = Field(default_factory=list, description="Subscribed event types")
    headers: Dict[str, str] = Field(default_factory=dict, description="Custom HTTP headers")
    retry_on_failure: bool = Field(default=True, description="Retry failed deliveries")
    max_retries: int = Field(default=3, ge=0, le=20, description="Maximum retry attempts")

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        return validate_webhook_url(v)

    @field_validator('events')
    @classmethod
    def validate_events(cls, v: List[str]) -> List[str]:
        for event_type in v:
            validate_event_type(event_type)
        return list(dict.fromkeys(v))


class UpdateWebhookConfigRequest(BaseModel):
    """
    Request model for partially updating a webhook config.

    Only fields that are present in the request body are applied.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    url: Optional[str] = Field(default=None)
    enabled: Optional[bool] = Field(default=None)
    events: Optional[List[str]] = Field(default=None)
    headers: Optional[Dict[str, str]] = Field(default=None)
    retry_on_failure: Optional[bool] = Field(default=None)
    max_retries: Optional[int] = Field(default=None, ge=0, le=20)

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return validate_webhook_url(v)

    @field_validator('events')
    @classmethod
    def validate_events(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        for event_type in v:
            validate_event_type(event_type)
        return list(dict.fromkeys(v))

    def to_updates(self) -> Dict[str, Any]:
        """Fields the caller actually supplied."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


class WebhookTestRequest(BaseModel):
    """Request model for a connectivity test against an arbitrary URL."""

    model_config = ConfigDict(str_strip_whitespace=True)

    url: str = Field(..., description="Webhook URL to test")
    headers: Dict[str, str] = Field(default_factory=dict, description="Custom HTTP headers")

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        return validate_webhook_url(v)


class TriggerEventRequest(BaseModel):
    """
    Request model for ingesting captured tweet events.

    Each tweet is a GraphQL tweet result; a stub holding only
    rest_id is accepted as well.
    """

    tweets: List[Dict[str, Any]] = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Tweets the event applies to"
    )

    @field_validator('tweets')
    @classmethod
    def validate_tweets(cls, v: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Every tweet needs an identifier to build its log id and URL."""
        for tweet in v:
            rest_id = tweet.get('rest_id')
            if not rest_id or not isinstance(rest_id, str):
                raise ValueError("every tweet must have a non-empty string rest_id")
        return v

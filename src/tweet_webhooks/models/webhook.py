"""
Module: webhook.py
Description: Webhook configuration and delivery log models.

Defines the operator-managed delivery target (WebhookConfig) and the
durable audit record written for every delivery attempt series
(WebhookLog).

Key Components:
- WEBHOOK_EVENT_TYPES: Closed set of events a config may subscribe to
- WebhookConfig: Delivery target with retry policy
- WebhookLog: Delivery log row with pending/success/failed lifecycle

Dependencies: pydantic, typing
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

WEBHOOK_EVENT_TYPES = ("like", "bookmark", "view")

LOG_STATUS_PENDING = "pending"
LOG_STATUS_SUCCESS = "success"
LOG_STATUS_FAILED = "failed"
TERMINAL_LOG_STATUSES = (LOG_STATUS_SUCCESS, LOG_STATUS_FAILED)


def validate_event_type(event_type: str) -> str:
    """Raise ValueError unless event_type is one of WEBHOOK_EVENT_TYPES."""
    if event_type not in WEBHOOK_EVENT_TYPES:
        raise ValueError(
            f"event_type must be one of: {', '.join(WEBHOOK_EVENT_TYPES)}"
        )
    return event_type


def validate_webhook_url(url: str) -> str:
    """Raise ValueError unless url is a non-empty http(s) URL."""
    if not url or not isinstance(url, str):
        raise ValueError("url must be a non-empty string")
    if not url.startswith(('http://', 'https://')):
        raise ValueError("url must be a valid HTTP/HTTPS URL")
    return url


class WebhookConfig(BaseModel):
    """
    Operator-defined delivery target.

    Attributes:
        id: Unique config identifier
        name: Display name
        url: Destination URL receiving POSTed payloads
        enabled: Disabled configs never receive deliveries
        events: Subscribed event types
        headers: Custom HTTP headers sent with every delivery
        retry_on_failure: Whether failed deliveries enter the retry queue
        max_retries: Retry attempts allowed after the first failure
        created_at: Creation time (epoch ms)
        updated_at: Last modification time (epoch ms)
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    id: str = Field(..., min_length=1, description="Unique config identifier")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    url: str = Field(..., description="Webhook destination URL")
    enabled: bool = Field(default=True, description="Whether the webhook is enabled")
    events: List[str] = Field(default_factory=list, description="Subscribed event types")
    headers: Dict[str, str] = Field(default_factory=dict, description="Custom HTTP headers")
    retry_on_failure: bool = Field(default=True, description="Retry failed deliveries")
    max_retries: int = Field(default=3, ge=0, le=20, description="Maximum retry attempts")
    created_at: int = Field(..., ge=0, description="Creation timestamp (epoch ms)")
    updated_at: int = Field(..., ge=0, description="Last update timestamp (epoch ms)")

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Only http(s) endpoints can receive webhooks."""
        return validate_webhook_url(v)

    @field_validator('events')
    @classmethod
    def validate_events(cls, v: List[str]) -> List[str]:
        """Validate subscribed events, dropping duplicates but keeping order."""
        for event_type in v:
            validate_event_type(event_type)
        return list(dict.fromkeys(v))

    @property
    def retries_enabled(self) -> bool:
        """True when a failed delivery for this config may be retried."""
        return self.retry_on_failure and self.max_retries > 0

    def matches(self, event_type: str) -> bool:
        """True if this config should receive the given event."""
        return self.enabled and event_type in self.events


class WebhookLog(BaseModel):
    """
    Delivery log row for one (event, target) delivery series.

    Status only moves from pending to one of the terminal states;
    retry_count only grows.

    Attributes:
        id: webhook-{event_type}-{tweet_id}-{timestamp}
        event_type: Event that triggered the delivery
        tweet_id: Tweet the event refers to
        webhook_url: Destination that was called
        status: pending, success or failed
        request_payload: Serialized JSON payload
        response_status: HTTP status of the last response, if any
        error_message: Last delivery error, if any
        created_at: When the first attempt started (epoch ms)
        retry_count: Number of retries performed so far
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(..., min_length=1, description="Unique log identifier")
    event_type: str = Field(..., description="Triggering event type")
    tweet_id: str = Field(..., description="Tweet identifier")
    webhook_url: str = Field(..., description="Webhook URL that was called")
    status: str = Field(
        default=LOG_STATUS_PENDING,
        pattern=r"^(pending|success|failed)$",
        description="Delivery status"
    )
    request_payload: str = Field(..., description="Request payload as JSON string")
    response_status: Optional[int] = Field(default=None, description="HTTP response status")
    error_message: Optional[str] = Field(default=None, description="Error message if failed")
    created_at: int = Field(..., ge=0, description="Creation timestamp (epoch ms)")
    retry_count: int = Field(default=0, ge=0, description="Number of retry attempts")

    @field_validator('event_type')
    @classmethod
    def validate_event_type(cls, v: str) -> str:
        return validate_event_type(v)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_LOG_STATUSES

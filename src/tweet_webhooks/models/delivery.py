"""
Module: delivery.py
Description: Models exchanged inside the delivery pipeline.

Key Components:
- DeliveryResult: Uniform outcome of a single send attempt
- RetryQueueItem: In-memory scheduling unit held by the retry queue
- WebhookTestResult: Simplified connectivity test outcome

Dependencies: pydantic, typing
"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tweet_webhooks.models.payload import WebhookPayload


class DeliveryResult(BaseModel):
    """
    Outcome of one HTTP delivery attempt.

    Attributes:
        success: True when the endpoint answered with a 2xx status
        status: HTTP status code, absent for transport failures
        response_text: Response body, if a response arrived
        error: Human-readable failure description
    """

    success: bool
    status: Optional[int] = None
    response_text: Optional[str] = None
    error: Optional[str] = None


class RetryQueueItem(BaseModel):
    """
    Pending retry of a failed delivery.

    retry_count is the number of retries already performed, so the
    first retry of a delivery is scheduled with retry_count 0.

    Attributes:
        log_id: Delivery log row updated by the retry outcome
        config_id: Config the delivery belongs to
        url: Destination URL
        headers: Custom headers to resend
        payload: Payload to resend
        retry_count: Retries performed so far
        max_retries: Retries allowed
        next_retry_at: Earliest time the retry may run (epoch ms)
    """

    model_config = ConfigDict(frozen=True)

    log_id: str = Field(..., min_length=1)
    config_id: str = Field(..., min_length=1)
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    payload: WebhookPayload
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(..., ge=1)
    next_retry_at: Optional[int] = None

    @model_validator(mode='after')
    def validate_retry_budget(self) -> 'RetryQueueItem':
        """An item with no retries left must never be queued."""
        if self.retry_count >= self.max_retries:
            raise ValueError("retry_count must be lower than max_retries")
        return self


class WebhookTestResult(BaseModel):
    success: bool
    message: str

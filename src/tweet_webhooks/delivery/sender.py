"""
Module: sender.py
Description: HTTP delivery of webhook payloads.

Implements a single HTTP POST per call and maps every transport
outcome (response, timeout, network error) onto a DeliveryResult.
The sender never raises; callers only ever see a result.
"""

from typing import Dict, Optional

import httpx

from tweet_webhooks.models.delivery import DeliveryResult
from tweet_webhooks.models.payload import (
    WebhookAuthor,
    WebhookPayload,
    WebhookStats,
    WebhookTweetData,
)
from tweet_webhooks.utils.clock import now_iso, now_ms
from tweet_webhooks.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 10000
TEST_TIMEOUT_MS = 5000


def build_test_payload() -> WebhookPayload:
    """Synthetic like event used for connectivity checks."""
    return WebhookPayload(
        event='like',
        timestamp=now_ms(),
        data=WebhookTweetData(
            id='test-tweet-id',
            text='This is a test webhook from Tweet Webhooks',
            author=WebhookAuthor(
                id='test-author-id',
                screen_name='test_user',
                name='Test User',
            ),
            url='https://x.com/test_user/status/test-tweet-id',
            created_at=now_iso(),
            stats=WebhookStats(),
            media=[],
        ),
    )


class WebhookSender:
    """
    HTTP client for posting webhook payloads.

    Each call opens its own client with a request-level timeout, so
    concurrent deliveries never share connection state.
    """

    def __init__(
        self,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        test_timeout_ms: int = TEST_TIMEOUT_MS
    ):
        """
        Initialize webhook sender.

        Args:
            timeout_ms: Default timeout for deliveries
            test_timeout_ms: Timeout for connectivity tests

        Raises:
            ValueError: If a timeout is not positive
        """
        if timeout_ms <= 0 or test_timeout_ms <= 0:
            raise ValueError("timeouts must be positive")

        self.timeout_ms = timeout_ms
        self.test_timeout_ms = test_timeout_ms

    async def send(
        self,
        payload: WebhookPayload,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: Optional[int] = None
    ) -> DeliveryResult:
        """
        POST a payload to a webhook URL.

        Args:
            payload: Payload to deliver
            url: Destination URL
            headers: Custom headers; they override the defaults
            timeout_ms: Per-call timeout, defaults to self.timeout_ms

        Returns:
            DeliveryResult, successful only for 2xx responses
        """
        timeout_ms = timeout_ms or self.timeout_ms
        request_headers = {'Content-Type': 'application/json', **(headers or {})}

        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(timeout_ms / 1000)) as client:
                logger.debug(
                    "Attempting webhook delivery",
                    url=url,
                    event_type=payload.event,
                    tweet_id=payload.data.id
                )

                response = await client.post(
                    url,
                    content=payload.to_json(),
                    headers=request_headers
                )

            success = 200 <= response.status_code < 300
            if success:
                logger.debug(
                    "Webhook delivered",
                    url=url,
                    status_code=response.status_code,
                    response_time_ms=response.elapsed.total_seconds() * 1000
                )
            else:
                logger.warning(
                    "Webhook delivery HTTP error",
                    url=url,
                    status_code=response.status_code,
                    response=response.text[:500]  # Truncate large responses
                )

            return DeliveryResult(
                success=success,
                status=response.status_code,
                response_text=response.text,
                error=None if success else f"HTTP {response.status_code}: {response.reason_phrase}",
            )

        except httpx.TimeoutException:
            logger.warning("Webhook delivery timeout", url=url, timeout_ms=timeout_ms)
            return DeliveryResult(
                success=False,
                error=f"Request timeout after {timeout_ms}ms",
            )

        except httpx.TransportError as e:
            logger.warning("Webhook delivery network error", url=url, error=str(e))
            return DeliveryResult(
                success=False,
                error=f"Network error: {str(e) or 'Request failed'}",
            )

        except Exception as e:
            logger.error(
                "Webhook delivery failed",
                url=url,
                error=str(e),
                error_type=type(e).__name__
            )
            return DeliveryResult(success=False, error=str(e) or 'Unknown error')

    async def test(self, url: str, headers: Optional[Dict[str, str]] = None) -> DeliveryResult:
        """
        Send a synthetic like event to verify a webhook URL.

        Args:
            url: Webhook URL to test
            headers: Custom headers

        Returns:
            DeliveryResult of the single attempt
        """
        return await self.send(
            build_test_payload(),
            url=url,
            headers=headers,
            timeout_ms=self.test_timeout_ms
        )

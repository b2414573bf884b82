"""
Module: manager.py
Description: Webhook delivery orchestration.

Owns the in-memory mirror of webhook configs, fans events out to the
matching enabled configs, writes delivery logs and routes failed
deliveries to the retry queue.

Key Components:
- DeliveryManager: Config mirror, fan-out, logging and retry routing
- trigger_webhooks(): One tweet, every matching config, sequentially
- trigger_webhooks_batch(): Tweets outer, configs inner, sequentially

Delivery to the next config only starts after the previous config's
attempt and log writes have completed, so log order is deterministic.

Dependencies: typing, delivery, storage, models
"""

from typing import Any, Callable, Dict, List, Optional

from tweet_webhooks.delivery.formatter import (
    format_webhook_payload,
    generate_webhook_log_id,
)
from tweet_webhooks.delivery.queue import RetryQueue
from tweet_webhooks.delivery.sender import WebhookSender
from tweet_webhooks.models.delivery import RetryQueueItem, WebhookTestResult
from tweet_webhooks.models.payload import WebhookPayload
from tweet_webhooks.models.webhook import (
    LOG_STATUS_FAILED,
    LOG_STATUS_PENDING,
    LOG_STATUS_SUCCESS,
    WebhookConfig,
    WebhookLog,
    validate_event_type,
)
from tweet_webhooks.storage.dynamodb import WebhookStore
from tweet_webhooks.utils.clock import now_ms
from tweet_webhooks.utils.logger import get_logger
from tweet_webhooks.utils.metrics import MetricsClient

logger = get_logger(__name__)

UPDATABLE_CONFIG_FIELDS = (
    'name', 'url', 'enabled', 'events', 'headers', 'retry_on_failure', 'max_retries',
)


class DeliveryManager:
    """
    Manages webhook configurations, sending, and logging.

    Constructed once at startup and shared by everything that
    triggers events. The config mirror is refreshed from storage by
    load_configs() and after every config mutation.

    Attributes:
        config_version: Incremented on every config reload

    Example:
        >>> manager = DeliveryManager(store, sender, queue)
        >>> await manager.load_configs()
        >>> await manager.trigger_webhooks("like", tweet)
    """

    def __init__(
        self,
        store: WebhookStore,
        sender: WebhookSender,
        queue: Optional[RetryQueue] = None,
        clock: Callable[[], int] = now_ms,
        metrics: Optional[MetricsClient] = None
    ):
        """
        Initialize the delivery manager.

        Args:
            store: Config and log storage
            sender: HTTP sender for delivery attempts
            queue: Retry queue; one sharing store and sender is built if omitted
            clock: Source of epoch-millisecond timestamps
            metrics: Optional CloudWatch metrics client
        """
        self._store = store
        self._sender = sender
        self._queue = queue or RetryQueue(sender, store, clock=clock, metrics=metrics)
        self._clock = clock
        self._metrics = metrics

        self._configs: List[WebhookConfig] = []
        self._observers: List[Callable[[int], Any]] = []
        self._last_log_timestamp = 0
        self.config_version = 0

    @property
    def queue(self) -> RetryQueue:
        return self._queue

    @property
    def store(self) -> WebhookStore:
        return self._store

    # Config mirror

    def subscribe(self, callback: Callable[[int], Any]) -> Callable[[], None]:
        """
        Register a callback invoked with config_version after each reload.

        Returns:
            Function that removes the subscription
        """
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    async def load_configs(self) -> None:
        """Refresh the config mirror from storage and notify observers."""
        self._configs = await self._store.list_configs()
        self.config_version += 1

        for callback in list(self._observers):
            try:
                callback(self.config_version)
            except Exception as e:
                logger.warning("Config observer failed", error=str(e))

        logger.debug("Loaded webhook configs", count=len(self._configs))

    def get_configs(self) -> List[WebhookConfig]:
        return list(self._configs)

    def get_config(self, config_id: str) -> Optional[WebhookConfig]:
        return next((c for c in self._configs if c.id == config_id), None)

    def get_configs_for_event(self, event_type: str) -> List[WebhookConfig]:
        """
        Enabled configs subscribed to an event type.

        Args:
            event_type: like, bookmark or view

        Returns:
            Matching configs in mirror order
        """
        return [config for config in self._configs if config.matches(event_type)]

    async def add_config(self, config: WebhookConfig) -> bool:
        stored = await self._store.put_config(config)
        await self.load_configs()
        if stored:
            logger.info("Added webhook config", config_id=config.id, name=config.name)
        return stored

    async def update_config(self, config_id: str, updates: Dict[str, Any]) -> bool:
        """
        Apply partial updates to a stored config.

        The updates are merged into the current config and validated
        before anything is written.

        Returns:
            True if the config existed and was updated

        Raises:
            ValueError: If the merged config is invalid
        """
        current = await self._store.get_config(config_id)
        if current is None:
            logger.warning("Webhook config not found for update", config_id=config_id)
            return False

        changes = {k: v for k, v in updates.items() if k in UPDATABLE_CONFIG_FIELDS and v is not None}
        merged = WebhookConfig.model_validate({**current.model_dump(), **changes})

        updated = await self._store.update_config(
            config_id,
            {field: getattr(merged, field) for field in changes}
        )
        await self.load_configs()
        if updated:
            logger.info("Updated webhook config", config_id=config_id)
        return updated

    async def delete_config(self, config_id: str) -> bool:
        deleted = await self._store.delete_config(config_id)
        await self.load_configs()
        if deleted:
            logger.info("Deleted webhook config", config_id=config_id)
        return deleted

    # Delivery

    async def test_webhook(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None
    ) -> WebhookTestResult:
        """
        Send a synthetic event to a URL.

        Args:
            url: Webhook URL to test
            headers: Custom headers

        Returns:
            Success flag with an HTTP status summary or the raw error
        """
        result = await self._sender.test(url, headers or {})
        return WebhookTestResult(
            success=result.success,
            message=(
                f"Webhook test successful (HTTP {result.status})"
                if result.success
                else result.error or 'Unknown error'
            ),
        )

    async def trigger_webhooks(self, event_type: str, tweet: Dict[str, Any]) -> int:
        """
        Deliver one event to every matching config.

        Args:
            event_type: like, bookmark or view
            tweet: Tweet the event refers to

        Returns:
            Number of deliveries started
        """
        validate_event_type(event_type)
        configs = self.get_configs_for_event(event_type)
        if not configs:
            return 0

        return await self._deliver_tweet(configs, tweet, event_type)

    async def trigger_webhooks_batch(
        self,
        event_type: str,
        tweets: List[Dict[str, Any]]
    ) -> int:
        """
        Deliver one event per tweet to every matching config.

        Each tweet is delivered to all configs before the next tweet
        starts. A tweet that cannot be formatted is skipped.

        Args:
            event_type: like, bookmark or view
            tweets: Tweets the event refers to

        Returns:
            Number of deliveries started
        """
        validate_event_type(event_type)
        configs = self.get_configs_for_event(event_type)
        if not configs:
            return 0

        started = 0
        for tweet in tweets:
            started += await self._deliver_tweet(configs, tweet, event_type)
        return started

    async def _deliver_tweet(
        self,
        configs: List[WebhookConfig],
        tweet: Dict[str, Any],
        event_type: str
    ) -> int:
        try:
            payload = format_webhook_payload(tweet, event_type)
        except Exception as e:
            logger.error(
                "Failed to format webhook payload",
                event_type=event_type,
                tweet_id=str(tweet.get('rest_id')) if isinstance(tweet, dict) else None,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True
            )
            return 0

        for config in configs:
            await self._deliver(config, payload, payload.data.id, event_type)
        return len(configs)

    async def _deliver(
        self,
        config: WebhookConfig,
        payload: WebhookPayload,
        tweet_id: str,
        event_type: str
    ) -> None:
        try:
            await self._send_webhook(config, payload, tweet_id, event_type)
        except Exception as e:
            # Event sources must never see delivery failures
            logger.error(
                "Unexpected error sending webhook",
                config_id=config.id,
                tweet_id=tweet_id,
                event_type=event_type,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True
            )

    def _next_log_timestamp(self) -> int:
        """Strictly increasing timestamp so log ids never collide."""
        timestamp = max(self._clock(), self._last_log_timestamp + 1)
        self._last_log_timestamp = timestamp
        return timestamp

    async def _send_webhook(
        self,
        config: WebhookConfig,
        payload: WebhookPayload,
        tweet_id: str,
        event_type: str
    ) -> str:
        """
        Send a webhook and log the result.

        Returns:
            Id of the delivery log row
        """
        timestamp = self._next_log_timestamp()
        log_id = generate_webhook_log_id(event_type, tweet_id, timestamp)

        await self._store.put_log(WebhookLog(
            id=log_id,
            event_type=event_type,
            tweet_id=tweet_id,
            webhook_url=config.url,
            status=LOG_STATUS_PENDING,
            request_payload=payload.to_json(),
            created_at=timestamp,
            retry_count=0,
        ))

        result = await self._sender.send(payload, url=config.url, headers=config.headers)

        if result.success:
            await self._store.finalize_log(
                log_id,
                LOG_STATUS_SUCCESS,
                response_status=result.status
            )
            self._increment('WebhookDelivered', event_type)
            logger.debug(
                "Webhook sent successfully",
                event_type=event_type,
                tweet_id=tweet_id,
                config_id=config.id
            )
        elif config.retries_enabled:
            self._queue.add(RetryQueueItem(
                log_id=log_id,
                config_id=config.id,
                url=config.url,
                headers=config.headers,
                payload=payload,
                retry_count=0,
                max_retries=config.max_retries,
            ))
            await self._store.update_log(
                log_id,
                {'response_status': result.status, 'error_message': result.error},
                only_pending=True
            )
            self._increment('WebhookRetryQueued', event_type)
            logger.debug(
                "Webhook failed, added to retry queue",
                log_id=log_id,
                error=result.error
            )
        else:
            await self._store.finalize_log(
                log_id,
                LOG_STATUS_FAILED,
                response_status=result.status,
                error_message=result.error
            )
            self._increment('WebhookFailed', event_type)
            logger.warning(
                "Webhook failed",
                log_id=log_id,
                config_id=config.id,
                error=result.error
            )

        return log_id

    def _increment(self, metric_name: str, event_type: str) -> None:
        if self._metrics is not None:
            self._metrics.increment(metric_name, event_type=event_type)

    # Queue lifecycle

    def start_queue(self) -> None:
        self._queue.start()

    def stop_queue(self) -> None:
        self._queue.stop()

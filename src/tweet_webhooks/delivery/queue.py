"""
Module: queue.py
Description: In-memory retry queue with exponential backoff.

Holds failed deliveries and re-sends them on a single event-loop
timer aimed at the earliest due item. Every retry outcome ends in a
delivery log update; nothing is raised to callers.

Key Components:
- RetryQueue: Scheduler owning the pending items and the timer handle
- calculate_delay(): min(base * 2^retry_count, cap) via tenacity

Pending items live in memory only. A restart drops them and leaves
their log rows pending.

Dependencies: asyncio, tenacity, typing
"""

import asyncio
from typing import Callable, List, Optional

from tenacity import RetryCallState, wait_exponential

from tweet_webhooks.delivery.sender import WebhookSender
from tweet_webhooks.models.delivery import RetryQueueItem
from tweet_webhooks.models.webhook import LOG_STATUS_FAILED, LOG_STATUS_SUCCESS
from tweet_webhooks.storage.dynamodb import WebhookStore
from tweet_webhooks.utils.clock import now_ms
from tweet_webhooks.utils.logger import get_logger
from tweet_webhooks.utils.metrics import MetricsClient

logger = get_logger(__name__)

BASE_RETRY_DELAY_MS = 1000
MAX_RETRY_DELAY_MS = 5 * 60 * 1000


def calculate_delay(
    retry_count: int,
    base_ms: int = BASE_RETRY_DELAY_MS,
    max_ms: int = MAX_RETRY_DELAY_MS
) -> int:
    """
    Backoff before a retry.

    Args:
        retry_count: Retries already performed (0 for the first retry)
        base_ms: Delay of the first retry
        max_ms: Upper bound of any delay

    Returns:
        Delay in milliseconds
    """
    if retry_count < 0:
        raise ValueError("retry_count must be >= 0")

    # Retries are timer-driven rather than wrapped in a Retrying loop, so the
    # call state is built directly. wait_exponential only reads attempt_number,
    # which tenacity counts from 1.
    state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
    state.attempt_number = retry_count + 1
    return int(wait_exponential(multiplier=base_ms, max=max_ms)(state))


class RetryQueue:
    """
    Single-timer scheduler for webhook retries.

    The queue is idle when no timer is pending and armed when one
    timer is aimed at the earliest next_retry_at. A processing pass
    holds a re-entrancy flag while it awaits deliveries, so a timer
    firing mid-pass cannot start a second pass.

    Example:
        >>> queue = RetryQueue(sender, store)
        >>> queue.start()
        >>> queue.add(item)
    """

    def __init__(
        self,
        sender: WebhookSender,
        store: WebhookStore,
        base_delay_ms: int = BASE_RETRY_DELAY_MS,
        max_delay_ms: int = MAX_RETRY_DELAY_MS,
        clock: Callable[[], int] = now_ms,
        metrics: Optional[MetricsClient] = None
    ):
        """
        Initialize the retry queue.

        Args:
            sender: Sender used to re-attempt deliveries
            store: Store holding the delivery logs to update
            base_delay_ms: Delay before the first retry
            max_delay_ms: Cap on any retry delay
            clock: Source of epoch-millisecond timestamps
            metrics: Optional CloudWatch metrics client
        """
        self._sender = sender
        self._store = store
        self._base_delay_ms = base_delay_ms
        self._max_delay_ms = max_delay_ms
        self._clock = clock
        self._metrics = metrics

        self._queue: List[RetryQueueItem] = []
        self._is_processing = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._timer_target: Optional[int] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def size(self) -> int:
        return len(self._queue)

    @property
    def pending(self) -> List[RetryQueueItem]:
        """Snapshot of queued items in insertion order."""
        return list(self._queue)

    @property
    def is_armed(self) -> bool:
        return self._timer is not None

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    @property
    def next_retry_at(self) -> Optional[int]:
        """Due time of the earliest queued item."""
        if not self._queue:
            return None
        return min(item.next_retry_at for item in self._queue)

    def calculate_delay(self, retry_count: int) -> int:
        return calculate_delay(retry_count, self._base_delay_ms, self._max_delay_ms)

    def add(self, item: RetryQueueItem) -> RetryQueueItem:
        """
        Schedule a retry.

        Any next_retry_at on the incoming item is recomputed from its
        retry_count.

        Args:
            item: Retry to schedule

        Returns:
            The queued item with next_retry_at set
        """
        delay = self.calculate_delay(item.retry_count)
        scheduled = item.model_copy(update={'next_retry_at': self._clock() + delay})
        self._queue.append(scheduled)

        logger.debug(
            "Added webhook to retry queue",
            log_id=item.log_id,
            retry_count=item.retry_count,
            delay_ms=delay,
            queue_size=len(self._queue)
        )

        self._schedule_processing()
        return scheduled

    def start(self) -> None:
        """Arm the timer for whatever is already queued."""
        logger.info("Retry queue started", queue_size=len(self._queue))
        self._schedule_processing()

    def stop(self) -> None:
        """
        Cancel the pending timer.

        Queued items stay in memory and are picked up again by start()
        or the next add(). A delivery already in flight is not aborted.
        """
        self._cancel_timer()
        self._is_processing = False
        logger.info("Retry queue stopped", queue_size=len(self._queue))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._timer_target = None

    def _schedule_processing(self) -> None:
        """Aim the timer at the earliest due item."""
        if self._is_processing or not self._queue:
            return

        target = self.next_retry_at
        if self._timer is not None and self._timer_target == target:
            return

        self._cancel_timer()
        delay_ms = max(0, target - self._clock())
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay_ms / 1000, self._on_timer)
        self._timer_target = target

    def _on_timer(self) -> None:
        self._timer = None
        self._timer_target = None
        self._task = asyncio.ensure_future(self.process_queue())

    async def process_queue(self) -> None:
        """
        Deliver every due item once.

        Due items are removed before any delivery starts; failures
        with budget left are re-added with an incremented retry_count.
        """
        if self._is_processing:
            return

        self._is_processing = True
        self._cancel_timer()
        try:
            now = self._clock()
            ready = [item for item in self._queue if item.next_retry_at <= now]
            self._queue = [item for item in self._queue if item.next_retry_at > now]

            if ready:
                logger.debug(
                    "Processing retry queue",
                    ready=len(ready),
                    remaining=len(self._queue)
                )

            for item in ready:
                try:
                    await self._process_item(item)
                except Exception as e:
                    self._recover_item(item, e)
        finally:
            self._is_processing = False
            self._schedule_processing()

    async def _process_item(self, item: RetryQueueItem) -> None:
        result = await self._sender.send(item.payload, url=item.url, headers=item.headers)
        attempts = item.retry_count + 1

        if result.success:
            await self._store.finalize_log(
                item.log_id,
                LOG_STATUS_SUCCESS,
                response_status=result.status,
                retry_count=attempts
            )
            self._increment('WebhookRetrySucceeded', item)
            logger.info("Webhook retry succeeded", log_id=item.log_id, retry_count=attempts)
            return

        if attempts < item.max_retries:
            self.add(item.model_copy(update={'retry_count': attempts, 'next_retry_at': None}))
            await self._store.update_log(
                item.log_id,
                {
                    'retry_count': attempts,
                    'response_status': result.status,
                    'error_message': result.error,
                },
                only_pending=True
            )
            return

        await self._store.finalize_log(
            item.log_id,
            LOG_STATUS_FAILED,
            response_status=result.status,
            error_message=result.error,
            retry_count=attempts
        )
        self._increment('WebhookRetryExhausted', item)
        logger.warning(
            "Webhook failed after retries",
            log_id=item.log_id,
            max_retries=item.max_retries,
            error=result.error
        )

    def _recover_item(self, item: RetryQueueItem, error: Exception) -> None:
        """Keep an item whose processing blew up eligible for a later pass."""
        attempts = item.retry_count + 1
        logger.error(
            "Unexpected error processing retry",
            log_id=item.log_id,
            error=str(error),
            error_type=type(error).__name__,
            exc_info=True
        )
        if any(queued.log_id == item.log_id for queued in self._queue):
            # Already re-queued before the error
            return
        if attempts < item.max_retries:
            self.add(item.model_copy(update={'retry_count': attempts, 'next_retry_at': None}))
        else:
            logger.error("Dropping retry with no budget left", log_id=item.log_id)

    def _increment(self, metric_name: str, item: RetryQueueItem) -> None:
        if self._metrics is not None:
            self._metrics.increment(metric_name, event_type=item.payload.event)

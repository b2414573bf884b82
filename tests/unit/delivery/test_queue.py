"""
Module: test_queue.py
Description: Unit tests for the retry queue.

Drives RetryQueue with a fake clock and a mocked sender against the
moto-backed store. Covers backoff, timer arming, due-item selection,
retry exhaustion, re-entrancy and error recovery.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tweet_webhooks.delivery.formatter import format_webhook_payload
from tweet_webhooks.delivery.queue import RetryQueue, calculate_delay
from tweet_webhooks.models.delivery import DeliveryResult, RetryQueueItem
from tweet_webhooks.models.webhook import WebhookLog

OK = DeliveryResult(success=True, status=200, response_text="ok")
SERVER_ERROR = DeliveryResult(
    success=False,
    status=500,
    response_text="boom",
    error="HTTP 500: Internal Server Error"
)
MAX_DELAY_MS = 300000


@pytest.fixture
def sender():
    mock = AsyncMock()
    mock.send.return_value = OK
    return mock


@pytest.fixture
def queue(sender, store, clock):
    retry_queue = RetryQueue(sender, store, clock=clock)
    yield retry_queue
    retry_queue.stop()


@pytest.fixture
def payload(minimal_tweet):
    return format_webhook_payload(minimal_tweet, "like")


@pytest.fixture
def make_item(payload, store, clock):
    """Factory storing a pending log row and returning its queue item."""
    async def _make(
        log_id="webhook-like-1-1",
        retry_count=0,
        max_retries=3,
        url="https://hooks.example.com/a"
    ):
        await store.put_log(WebhookLog(
            id=log_id,
            event_type="like",
            tweet_id=payload.data.id,
            webhook_url=url,
            request_payload=payload.to_json(),
            created_at=clock.now
        ))
        return RetryQueueItem(
            log_id=log_id,
            config_id="webhook-config-1",
            url=url,
            payload=payload,
            retry_count=retry_count,
            max_retries=max_retries
        )

    return _make


class TestCalculateDelay:
    """Test cases for exponential backoff."""

    @pytest.mark.parametrize("retry_count,expected", [
        (0, 1000),
        (1, 2000),
        (2, 4000),
        (3, 8000),
        (8, 256000),
        (9, MAX_DELAY_MS),
        (10, MAX_DELAY_MS),
        (30, MAX_DELAY_MS),
    ])
    def test_default_backoff(self, retry_count, expected):
        assert calculate_delay(retry_count) == expected

    def test_custom_base_and_cap(self):
        assert calculate_delay(0, base_ms=500, max_ms=3000) == 500
        assert calculate_delay(2, base_ms=500, max_ms=3000) == 2000
        assert calculate_delay(3, base_ms=500, max_ms=3000) == 3000

    def test_negative_retry_count(self):
        with pytest.raises(ValueError, match="retry_count must be >= 0"):
            calculate_delay(-1)

    def test_queue_uses_its_own_settings(self, sender, store, clock):
        """Test the method form applies the queue's base and cap."""
        retry_queue = RetryQueue(sender, store, base_delay_ms=100, max_delay_ms=250, clock=clock)

        assert retry_queue.calculate_delay(0) == 100
        assert retry_queue.calculate_delay(1) == 200
        assert retry_queue.calculate_delay(5) == 250


class TestScheduling:
    """Test cases for add/start/stop and timer arming."""

    @pytest.mark.asyncio
    async def test_add_sets_due_time_and_arms(self, queue, make_item, clock):
        """Test add computes next_retry_at from the clock and arms the timer."""
        item = await make_item(retry_count=2)

        scheduled = queue.add(item)

        assert scheduled.next_retry_at == clock.now + 4000
        assert queue.size == 1
        assert queue.is_armed is True
        assert queue.next_retry_at == clock.now + 4000

    @pytest.mark.asyncio
    async def test_add_recomputes_stale_due_time(self, queue, make_item, clock):
        """Test an incoming next_retry_at is ignored."""
        item = (await make_item()).model_copy(update={'next_retry_at': 1})

        scheduled = queue.add(item)

        assert scheduled.next_retry_at == clock.now + 1000

    @pytest.mark.asyncio
    async def test_earlier_item_takes_over_timer(self, queue, make_item, clock):
        """Test the timer follows the earliest due item."""
        queue.add(await make_item("webhook-like-1-1", retry_count=2))
        queue.add(await make_item("webhook-like-2-2", retry_count=0))

        assert queue.next_retry_at == clock.now + 1000
        assert queue.is_armed is True
        assert [i.log_id for i in queue.pending] == ["webhook-like-1-1", "webhook-like-2-2"]

    @pytest.mark.asyncio
    async def test_stop_keeps_items_and_start_rearms(self, queue, make_item):
        """Test stop only cancels the timer."""
        queue.add(await make_item())

        queue.stop()

        assert queue.is_armed is False
        assert queue.size == 1

        queue.start()

        assert queue.is_armed is True

    @pytest.mark.asyncio
    async def test_start_on_empty_queue_stays_idle(self, queue):
        queue.start()

        assert queue.is_armed is False
        assert queue.next_retry_at is None

    @pytest.mark.asyncio
    async def test_timer_fires_process_queue(self, sender, store, make_item):
        """Test the armed timer actually runs a processing pass."""
        retry_queue = RetryQueue(sender, store, base_delay_ms=1, max_delay_ms=1)
        retry_queue.add(await make_item())

        for _ in range(100):
            if sender.send.await_count and retry_queue.size == 0 and not retry_queue.is_processing:
                break
            await asyncio.sleep(0.01)
        retry_queue.stop()

        sender.send.assert_awaited_once()
        log = await store.get_log("webhook-like-1-1")
        assert log.status == "success"
        assert log.retry_count == 1


class TestProcessQueue:
    """Test cases for processing passes."""

    @pytest.mark.asyncio
    async def test_items_not_due_are_left_alone(self, queue, make_item, sender, clock):
        queue.add(await make_item())
        clock.advance(999)

        await queue.process_queue()

        sender.send.assert_not_awaited()
        assert queue.size == 1

    @pytest.mark.asyncio
    async def test_success_finalizes_log(self, queue, make_item, sender, store, clock):
        """Test a successful retry marks the log success with one retry."""
        item = queue.add(await make_item())
        clock.advance(1000)

        await queue.process_queue()

        sender.send.assert_awaited_once_with(item.payload, url=item.url, headers={})
        assert queue.size == 0
        assert queue.is_armed is False

        log = await store.get_log(item.log_id)
        assert log.status == "success"
        assert log.response_status == 200
        assert log.retry_count == 1

    @pytest.mark.asyncio
    async def test_failure_requeues_with_backoff(self, queue, make_item, sender, store, clock):
        """Test a failed retry is re-added with the next backoff step."""
        sender.send.return_value = SERVER_ERROR
        queue.add(await make_item())
        clock.advance(1000)

        await queue.process_queue()

        assert queue.size == 1
        requeued = queue.pending[0]
        assert requeued.retry_count == 1
        assert requeued.next_retry_at == clock.now + 2000
        assert queue.is_armed is True

        log = await store.get_log(requeued.log_id)
        assert log.status == "pending"
        assert log.retry_count == 1
        assert log.response_status == 500
        assert log.error_message == "HTTP 500: Internal Server Error"

    @pytest.mark.asyncio
    async def test_exhaustion_after_max_retries(self, queue, make_item, sender, store, clock):
        """Test three failed retries finalize the log and empty the queue."""
        sender.send.return_value = SERVER_ERROR
        queue.add(await make_item(max_retries=3))

        for _ in range(3):
            clock.advance(MAX_DELAY_MS)
            await queue.process_queue()

        assert sender.send.await_count == 3
        assert queue.size == 0

        log = await store.get_log("webhook-like-1-1")
        assert log.status == "failed"
        assert log.retry_count == 3
        assert log.error_message == "HTTP 500: Internal Server Error"

        # Nothing left to retry
        clock.advance(MAX_DELAY_MS)
        await queue.process_queue()
        assert sender.send.await_count == 3

    @pytest.mark.asyncio
    async def test_fail_then_succeed(self, queue, make_item, sender, store, clock):
        sender.send.side_effect = [SERVER_ERROR, OK]
        queue.add(await make_item())

        clock.advance(1000)
        await queue.process_queue()
        clock.advance(2000)
        await queue.process_queue()

        log = await store.get_log("webhook-like-1-1")
        assert log.status == "success"
        assert log.retry_count == 2
        assert queue.size == 0

    @pytest.mark.asyncio
    async def test_due_items_sent_in_insertion_order(self, queue, make_item, sender, clock):
        queue.add(await make_item("webhook-like-1-1", url="https://hooks.example.com/first"))
        queue.add(await make_item("webhook-like-2-2", url="https://hooks.example.com/second"))
        clock.advance(1000)

        await queue.process_queue()

        urls = [c.kwargs["url"] for c in sender.send.await_args_list]
        assert urls == ["https://hooks.example.com/first", "https://hooks.example.com/second"]
        assert queue.size == 0

    @pytest.mark.asyncio
    async def test_reentrant_pass_is_ignored(self, queue, make_item, sender, clock):
        """Test a pass started mid-pass returns without sending."""
        late = await make_item("webhook-like-2-2")
        observed = {}

        async def send_and_reenter(*args, **kwargs):
            observed['processing'] = queue.is_processing
            await queue.process_queue()
            queue.add(late)
            observed['armed_during_pass'] = queue.is_armed
            return OK

        sender.send.side_effect = send_and_reenter
        queue.add(await make_item("webhook-like-1-1"))
        clock.advance(1000)

        await queue.process_queue()

        assert sender.send.await_count == 1
        assert observed == {'processing': True, 'armed_during_pass': False}
        assert queue.is_processing is False
        assert queue.size == 1
        assert queue.is_armed is True

    @pytest.mark.asyncio
    async def test_unexpected_error_recovers_item(self, queue, make_item, sender, store, clock):
        """Test an exception for one item neither stops the batch nor loses the item."""
        sender.send.side_effect = [RuntimeError("store exploded"), OK]
        queue.add(await make_item("webhook-like-1-1"))
        queue.add(await make_item("webhook-like-2-2"))
        clock.advance(1000)

        await queue.process_queue()

        assert sender.send.await_count == 2
        assert [(i.log_id, i.retry_count) for i in queue.pending] == [("webhook-like-1-1", 1)]
        assert (await store.get_log("webhook-like-2-2")).status == "success"
        assert queue.is_processing is False

    @pytest.mark.asyncio
    async def test_error_after_requeue_keeps_single_entry(self, queue, make_item, sender, store, clock):
        """Test a log write failing after the re-queue does not queue the item twice."""
        sender.send.return_value = SERVER_ERROR
        queue.add(await make_item("webhook-like-1-1"))
        clock.advance(1000)

        with patch.object(store, 'update_log', AsyncMock(side_effect=RuntimeError("write failed"))):
            await queue.process_queue()

        assert [(i.log_id, i.retry_count) for i in queue.pending] == [("webhook-like-1-1", 1)]

        clock.advance(MAX_DELAY_MS)
        sender.send.return_value = OK
        await queue.process_queue()

        assert sender.send.await_count == 2
        assert queue.size == 0
        assert (await store.get_log("webhook-like-1-1")).status == "success"

    @pytest.mark.asyncio
    async def test_unexpected_error_without_budget_drops_item(self, queue, make_item, sender, clock):
        sender.send.side_effect = RuntimeError("boom")
        queue.add(await make_item(retry_count=2, max_retries=3))
        clock.advance(MAX_DELAY_MS)

        await queue.process_queue()

        assert queue.size == 0

    @pytest.mark.asyncio
    async def test_metrics_published(self, sender, store, clock, make_item):
        """Test exhaustion and success counters are tagged by event type."""
        metrics = MagicMock()
        retry_queue = RetryQueue(sender, store, clock=clock, metrics=metrics)
        sender.send.side_effect = [OK, SERVER_ERROR]
        retry_queue.add(await make_item("webhook-like-1-1"))
        retry_queue.add(await make_item("webhook-like-2-2", retry_count=2, max_retries=3))
        clock.advance(MAX_DELAY_MS)

        await retry_queue.process_queue()
        retry_queue.stop()

        metrics.increment.assert_any_call('WebhookRetrySucceeded', event_type='like')
        metrics.increment.assert_any_call('WebhookRetryExhausted', event_type='like')

import asyncio
from typing import List
from unittest.mock import Mock

import pytest

from web3funnel.errors import TransportError
from web3funnel.events import EventRecord, EventType
from web3funnel.tracker import EventQueue, TrackerCallbacks, TrackerConfig


def make_record(n: int) -> EventRecord:
    return EventRecord(
        event_type=EventType.CUSTOM_EVENT,
        user_id="user",
        session_id="session",
        custom_data={"n": n},
    )


def numbers(records: List[EventRecord]) -> List[int]:
    return [r.custom_data["n"] for r in records]


class FakeTransport:
    """
    Records delivered batches; fails the first ``failures`` submissions.
    """

    def __init__(self, failures: int = 0, delay: float = 0.0):
        self.failures = failures
        self.delay = delay
        self.batches: List[List[EventRecord]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def submit_batch(self, records):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.failures:
                self.failures -= 1
                raise TransportError("Internal Server Error", status_code=500)
            self.batches.append(list(records))
            return {"success": True}
        finally:
            self.in_flight -= 1


class GatedFailingTransport:
    """
    Holds every submission until ``gate`` is set, then rejects it.
    """

    def __init__(self):
        self.gate = asyncio.Event()
        self.started = asyncio.Event()

    async def submit_batch(self, records):
        self.started.set()
        await self.gate.wait()
        raise TransportError("Service Unavailable", status_code=503)


@pytest.fixture
def config() -> TrackerConfig:
    return TrackerConfig(
        batch_size=3,
        batch_timeout=60.0,
        retry_attempts=3,
        retry_delay=0.01,
        api_base_url="http://ingest.test/api/v1",
    )


@pytest.mark.unit
class TestEventQueueSync:
    def test_enqueue_below_batch_size_does_not_flush(self, config):
        callbacks = Mock(spec=TrackerCallbacks)
        queue = EventQueue(FakeTransport(), config, callbacks)

        queue.enqueue(make_record(1))
        queue.enqueue(make_record(2))

        assert len(queue) == 2
        assert numbers(queue.events) == [1, 2]
        callbacks.batch_queued.assert_called_with(2)
        assert not queue.is_flushing()

    def test_request_flush_without_running_loop(self, config):
        queue = EventQueue(FakeTransport(), config)

        for n in range(3):
            queue.enqueue(make_record(n))

        assert queue.request_flush() is None
        assert len(queue) == 3

    def test_flush_nowait_on_empty_queue(self, config):
        queue = EventQueue(FakeTransport(), config)

        assert queue.flush_nowait() is None

    def test_callback_errors_do_not_reach_caller(self, config):
        callbacks = Mock(spec=TrackerCallbacks)
        callbacks.batch_queued.side_effect = RuntimeError("broken callback")
        queue = EventQueue(FakeTransport(), config, callbacks)

        queue.enqueue(make_record(1))

        assert len(queue) == 1


@pytest.mark.unit
class TestEventQueue:
    @pytest.mark.asyncio
    async def test_reaching_batch_size_sends_one_batch(self, config):
        transport = FakeTransport()
        callbacks = Mock(spec=TrackerCallbacks)
        queue = EventQueue(transport, config, callbacks)

        for n in range(3):
            queue.enqueue(make_record(n))

        assert queue.is_flushing()
        assert await queue.join()

        assert [numbers(b) for b in transport.batches] == [[0, 1, 2]]
        assert len(queue) == 0
        callbacks.batch_sent.assert_called_once_with(3)

    @pytest.mark.asyncio
    async def test_flush_empty_queue(self, config):
        queue = EventQueue(FakeTransport(), config)

        assert await queue.flush() == {"status": "no_events", "count": 0}

    @pytest.mark.asyncio
    async def test_flush_sends_at_most_batch_size(self, config):
        transport = FakeTransport()
        queue = EventQueue(transport, config)
        queue._events.extend(make_record(n) for n in range(5))

        result = await queue.flush()

        assert result == {"status": "success", "count": 3}
        assert numbers(queue.events) == [3, 4]

    @pytest.mark.asyncio
    async def test_failed_batch_returns_ahead_of_newer_events(self, config):
        config.retry_delay = 60.0
        transport = GatedFailingTransport()
        callbacks = Mock(spec=TrackerCallbacks)
        queue = EventQueue(transport, config, callbacks)

        flush = asyncio.ensure_future(queue.flush())
        queue.enqueue(make_record(1))
        queue.enqueue(make_record(2))
        await transport.started.wait()

        queue.enqueue(make_record(3))
        transport.gate.set()
        result = await flush

        assert result["status"] == "error"
        assert result["count"] == 2
        assert "503" in result["error"]
        assert numbers(queue.events) == [1, 2, 3]
        assert queue.retry_count == 1
        callbacks.batch_failed.assert_called_once()
        callbacks.retry_scheduled.assert_called_once_with(1, 60.0)

        await queue.close(flush=False)

    @pytest.mark.asyncio
    async def test_linear_backoff_until_attempts_exhausted(self, config):
        transport = FakeTransport(failures=100)
        callbacks = Mock(spec=TrackerCallbacks)
        queue = EventQueue(transport, config, callbacks)

        queue.enqueue(make_record(1))
        drained = await queue.join(poll_interval=0.005)

        assert drained is False
        assert queue.retries_exhausted
        assert numbers(queue.events) == [1]
        assert callbacks.batch_failed.call_count == 4

        delays = [call.args for call in callbacks.retry_scheduled.call_args_list]
        assert [count for count, _ in delays] == [1, 2, 3]
        assert [delay for _, delay in delays] == pytest.approx([0.01, 0.02, 0.03])

        await queue.close(flush=False)

    @pytest.mark.asyncio
    async def test_success_after_retry_resets_retry_count(self, config):
        transport = FakeTransport(failures=1)
        queue = EventQueue(transport, config)
        queue.enqueue(make_record(1))

        first = await queue.flush()
        assert first["status"] == "error"
        assert queue.retry_count == 1

        assert await queue.join(poll_interval=0.005)
        assert queue.retry_count == 0
        assert [numbers(b) for b in transport.batches] == [[1]]

    @pytest.mark.asyncio
    async def test_concurrent_flush_requests_never_overlap(self, config):
        transport = FakeTransport(delay=0.01)
        queue = EventQueue(transport, config)

        for n in range(9):
            queue.enqueue(make_record(n))
        queue.flush_nowait()
        queue.flush_nowait()

        assert await queue.join(poll_interval=0.005)

        assert transport.max_in_flight == 1
        assert [numbers(b) for b in transport.batches] == [
            [0, 1, 2], [3, 4, 5], [6, 7, 8],
        ]

    @pytest.mark.asyncio
    async def test_batch_timer_flushes_partial_batch(self, config):
        config.batch_timeout = 0.02
        transport = FakeTransport()
        queue = EventQueue(transport, config)
        queue.start()

        queue.enqueue(make_record(1))
        await asyncio.sleep(0.1)

        assert [numbers(b) for b in transport.batches] == [[1]]
        await queue.close()

    @pytest.mark.asyncio
    async def test_close_sends_remaining_events_and_stops_timer(self, config):
        transport = FakeTransport()
        queue = EventQueue(transport, config)
        queue.start()
        queue.enqueue(make_record(1))

        await queue.close()

        assert [numbers(b) for b in transport.batches] == [[1]]
        assert queue._timer_task is None
        assert queue.is_drained()

    @pytest.mark.asyncio
    async def test_close_without_flush_keeps_events(self, config):
        transport = FakeTransport()
        queue = EventQueue(transport, config)
        queue.enqueue(make_record(1))

        await queue.close(flush=False)

        assert transport.batches == []
        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_no_retry_scheduled_after_close(self, config):
        transport = FakeTransport(failures=1)
        callbacks = Mock(spec=TrackerCallbacks)
        queue = EventQueue(transport, config, callbacks)
        queue.enqueue(make_record(1))

        await queue.close()

        callbacks.retry_scheduled.assert_not_called()
        assert not queue.retry_pending()
        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_is_treated_as_failure(self, config):
        transport = Mock()

        async def broken(records):
            raise ValueError("bad payload")

        transport.submit_batch = broken
        queue = EventQueue(transport, config)
        queue.enqueue(make_record(1))

        result = await queue.flush()

        assert result["status"] == "error"
        assert "bad payload" in result["error"]
        assert len(queue) == 1
        await queue.close(flush=False)

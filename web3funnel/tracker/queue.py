from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set, TYPE_CHECKING

from web3funnel.errors import TransportError

from .callbacks import NullTrackerCallbacks, TrackerCallbacks
from .config import TrackerConfig

if TYPE_CHECKING:
    from web3funnel.events import EventRecord
    from .transport import Transport


LOG = logging.getLogger(__name__)


class EventQueue:
    """
    Pending events in, batches out.

    Flush triggers: ``batch_size`` reached on enqueue, the periodic batch
    timer, scheduled retries and explicit ``flush()``/``flush_nowait()``
    calls. Only one flush runs at a time; requests arriving while a flush is
    in flight are folded into a single follow-up pass.

    A failed batch goes back to the front of the queue, ahead of anything
    enqueued while it was in flight.
    """

    def __init__(
        self,
        transport: "Transport",
        config: Optional[TrackerConfig] = None,
        callbacks: Optional[TrackerCallbacks] = None,
    ):
        self.transport = transport
        self.config = config or TrackerConfig()
        self.callbacks = callbacks or NullTrackerCallbacks()

        self._events: List["EventRecord"] = []
        self.retry_count = 0

        self._lock = asyncio.Lock()
        self._flush_task: Optional[asyncio.Task] = None
        self._flush_requested = False

        self._timer_task: Optional[asyncio.Task] = None
        self._retry_handle: Optional[asyncio.TimerHandle] = None

        # Pending flush tasks
        self._pending_tasks: Set[asyncio.Task] = set()
        self._closed = False

    def __len__(self) -> int:
        return len(self._events)

    @property
    def events(self) -> List["EventRecord"]:
        return list(self._events)

    @property
    def retries_exhausted(self) -> bool:
        return self.retry_count > self.config.retry_attempts

    def is_flushing(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    def is_drained(self) -> bool:
        return not self._events and not self.is_flushing()

    def enqueue(self, record: "EventRecord") -> None:
        self._events.append(record)
        self._notify("batch_queued", len(self._events))

        LOG.debug("Queued %s, %s event(s) pending", record.event_type.value, len(self._events))

        if len(self._events) >= self.config.batch_size:
            self.request_flush()

    def request_flush(self) -> Optional[asyncio.Task]:
        """
        Schedule a flush on the running loop without waiting for it.

        Returns:
            The task performing the flush, or None when no loop is running.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            LOG.debug("No running event loop, flush left to the batch timer")
            return None

        if self.is_flushing():
            self._flush_requested = True
            return self._flush_task

        self._flush_requested = False
        task = loop.create_task(self._drain())
        self._flush_task = task
        self._track(task)
        return task

    def flush_nowait(self) -> Optional[asyncio.Task]:
        """
        Best-effort flush for page teardown: the caller does not wait and
        a lost request is never reported.
        """
        if not self._events:
            return None
        LOG.debug("Fire-and-forget flush of %s event(s)", len(self._events))
        return self.request_flush()

    async def _drain(self) -> None:
        while True:
            result = await self.flush()

            if result["status"] != "success" or not self._events:
                break

            if not self._flush_requested and len(self._events) < self.config.batch_size:
                break

            self._flush_requested = False

    async def flush(self) -> Dict[str, Any]:
        """
        Send one batch from the front of the queue.

        Returns:
            Status dictionary
        """
        async with self._lock:
            if not self._events:
                return {"status": "no_events", "count": 0}

            batch = self._events[: self.config.batch_size]
            del self._events[: self.config.batch_size]
            event_count = len(batch)

            LOG.info("[Flush] -> Sending %s events", event_count)

            try:
                await self.transport.submit_batch(batch)
            except asyncio.CancelledError:
                self._events[:0] = batch
                raise
            except TransportError as exc:
                self._requeue(batch, exc)
                LOG.warning("Batch of %s events failed: %s", event_count, exc)
                self._schedule_retry()
                return {"status": "error", "count": event_count, "error": str(exc)}
            except Exception as exc:
                self._requeue(batch, exc)
                LOG.exception(f"Unexpected error: {exc}")
                self._schedule_retry()
                return {"status": "error", "count": event_count, "error": repr(exc)}

            self.retry_count = 0
            self._notify("batch_sent", event_count)
            LOG.info("Successfully sent %s events", event_count)

            return {"status": "success", "count": event_count}

    def _requeue(self, batch: List["EventRecord"], exc: Exception) -> None:
        # Put events back in front of whatever arrived during the attempt
        self._events[:0] = batch
        self.retry_count += 1
        self._notify("batch_failed", len(batch), exc)

    def _schedule_retry(self) -> None:
        if self._closed:
            return

        if self.retries_exhausted:
            LOG.warning(
                "Retry attempts exhausted, %s events stay queued for the next batch window",
                len(self._events),
            )
            return

        delay = self.config.retry_delay_for(self.retry_count)
        self._cancel_retry()
        self._retry_handle = asyncio.get_running_loop().call_later(delay, self._retry)

        LOG.warning("Retry %s scheduled in %.1fs", self.retry_count, delay)
        self._notify("retry_scheduled", self.retry_count, delay)

    def _retry(self) -> None:
        self._retry_handle = None
        self.request_flush()

    def retry_pending(self) -> bool:
        return self._retry_handle is not None

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    def start(self) -> None:
        """
        Start the periodic batch timer. Requires a running event loop.
        """
        if self._timer_task is not None and not self._timer_task.done():
            return

        self._closed = False
        self._timer_task = asyncio.get_running_loop().create_task(self._run_timer())

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.config.batch_timeout)
            if self._events:
                self.request_flush()

    async def join(self, poll_interval: float = 0.05) -> bool:
        """
        Wait until every queued event is delivered or retries are exhausted.
        Leftovers smaller than a batch are flushed without waiting for the
        batch timer.

        Returns:
            True when the queue is drained.
        """
        while not self.is_drained():
            if self.retries_exhausted and not self.is_flushing():
                break
            if not self.is_flushing() and not self.retry_pending():
                self.request_flush()
            await asyncio.sleep(poll_interval)

        return self.is_drained()

    async def close(self, flush: bool = True) -> None:
        """
        Stop the timer and pending retries, optionally sending what is left.
        """
        self._closed = True
        self._cancel_retry()

        if self._timer_task is not None:
            self._timer_task.cancel()
            await asyncio.gather(self._timer_task, return_exceptions=True)
            self._timer_task = None

        if self._pending_tasks:
            LOG.info(f"Waiting for {len(self._pending_tasks)} pending flushes")
            await asyncio.gather(*self._pending_tasks, return_exceptions=True)

        if flush:
            while self._events:
                result = await self.flush()
                if result["status"] != "success":
                    LOG.warning("Closing with %s undelivered events", len(self._events))
                    break

    def _track(self, task: asyncio.Task) -> None:
        self._pending_tasks.add(task)
        task.add_done_callback(self._pending_tasks.discard)

    def _notify(self, name: str, *args: Any) -> None:
        try:
            getattr(self.callbacks, name)(*args)
        except Exception:
            # Never let callback errors crash the queue
            LOG.debug("Callback %s failed", name, exc_info=True)

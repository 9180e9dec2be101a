"""Callback interface for queue and delivery events."""

from typing import Protocol


class TrackerCallbacks(Protocol):
    def batch_queued(self, current_queue_size: int) -> None: ...
    def batch_sent(self, count: int) -> None: ...
    def batch_failed(self, count: int, exc: Exception) -> None: ...
    def retry_scheduled(self, retry_count: int, delay: float) -> None: ...


class NullTrackerCallbacks:
    def batch_queued(self, current_queue_size: int) -> None:
        pass

    def batch_sent(self, count: int) -> None:
        pass

    def batch_failed(self, count: int, exc: Exception) -> None:
        pass

    def retry_scheduled(self, retry_count: int, delay: float) -> None:
        pass


class CountingTrackerCallbacks(NullTrackerCallbacks):
    """
    Keeps delivery totals, used for the replay summary.
    """

    def __init__(self):
        self.events_sent = 0
        self.batches_sent = 0
        self.batches_failed = 0
        self.retries_scheduled = 0
        self.last_error: "Exception | None" = None

    def batch_sent(self, count: int) -> None:
        self.batches_sent += 1
        self.events_sent += count

    def batch_failed(self, count: int, exc: Exception) -> None:
        self.batches_failed += 1
        self.last_error = exc

    def retry_scheduled(self, retry_count: int, delay: float) -> None:
        self.retries_scheduled += 1

from __future__ import annotations

from dataclasses import dataclass

from web3funnel import constants
from web3funnel.errors import ConfigurationError


@dataclass
class TrackerConfig:
    batch_size: int = constants.BATCH_SIZE  # flush as soon as this many events are queued
    batch_timeout: float = constants.BATCH_TIMEOUT  # periodic flush interval, seconds
    retry_attempts: int = constants.RETRY_ATTEMPTS
    retry_delay: float = constants.RETRY_DELAY  # multiplied by the retry count
    api_base_url: str = constants.API_BASE_URL or constants.URLSettings.API_BASE_URL.value
    timeout: float = float(constants.REQUEST_TIMEOUT)
    connect_attempts: int = constants.CONNECT_ATTEMPTS

    def __post_init__(self):
        if self.batch_size < 1:
            raise ConfigurationError("batch_size", "must be at least 1")
        if self.batch_size > constants.MAX_BATCH_EVENTS:
            raise ConfigurationError(
                "batch_size",
                f"the ingest API accepts at most {constants.MAX_BATCH_EVENTS} events per batch",
            )
        if self.batch_timeout <= 0:
            raise ConfigurationError("batch_timeout", "must be positive")
        if self.retry_attempts < 0:
            raise ConfigurationError("retry_attempts", "must not be negative")
        if self.retry_delay < 0:
            raise ConfigurationError("retry_delay", "must not be negative")
        if self.connect_attempts < 1:
            raise ConfigurationError("connect_attempts", "must be at least 1")

    def retry_delay_for(self, retry_count: int) -> float:
        """Linear backoff: one ``retry_delay`` per consecutive failure."""
        return self.retry_delay * retry_count

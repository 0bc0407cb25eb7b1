"""
Abstract base class for metrics channels.

A channel receives a logical key and a numeric value for every sample the
poller obtains. Formatting, batching and transport are the channel's
concern; the counter core only produces samples.
"""

from abc import ABC, abstractmethod


class MetricsChannel(ABC):
    """Abstract base class for metrics channel implementations."""

    @abstractmethod
    def report(self, key: str, value: float) -> None:
        """
        Publish one sampled value.

        Args:
            key: Logical metric key (e.g., "web.default.cpu")
            value: Sampled counter value
        """
        pass

    def flush(self) -> None:
        """Push buffered values to their destination. No-op by default."""

    def close(self) -> None:
        """Flush and release resources."""
        self.flush()

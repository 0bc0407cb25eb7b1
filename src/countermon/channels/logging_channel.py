"""
Channel that writes every sample to the application log.
"""

import logging

from .base import MetricsChannel

logger = logging.getLogger(__name__)


class LoggingChannel(MetricsChannel):
    """Logs ``key value`` lines at INFO level (or a custom level)."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def report(self, key: str, value: float) -> None:
        logger.log(self.level, f"{key} {value:.6g}")

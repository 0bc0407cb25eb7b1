"""
Metrics channels that receive sampled values.

Provides a factory selecting the channel configured in ``[output]``.
"""

from ..models.config import OutputConfig
from .base import MetricsChannel
from .logging_channel import LoggingChannel
from .parquet_channel import ParquetChannel


def create_channel(output: OutputConfig) -> MetricsChannel:
    """
    Create the metrics channel described by the output configuration.

    Raises:
        ValueError: If the channel type is unknown
    """
    if output.channel == "log":
        return LoggingChannel()
    if output.channel == "parquet":
        return ParquetChannel(output.parquet_path, flush_every=output.flush_every)
    raise ValueError(f"Unsupported channel type: {output.channel}")


__all__ = [
    "MetricsChannel",
    "LoggingChannel",
    "ParquetChannel",
    "create_channel",
]

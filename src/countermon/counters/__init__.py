"""
Counter resolution and lifecycle management.

- base: the abstract counter subsystem (providers and handles)
- psutil_provider: a psutil-backed provider for the Process and Processor categories
- resolver: maps instance specifiers to live instance names
- binding: self-renewing handle to one counter instance
- listener: follows the worker process of an application pool
"""

from .base import (
    ID_PROCESS_COUNTER,
    PROCESS_CATEGORY,
    AbstractCounterHandle,
    AbstractCounterProvider,
)
from .binding import CounterBinding
from .listener import TargetListener
from .psutil_provider import PROCESSOR_CATEGORY, PsutilCounterProvider
from .resolver import InstanceResolver

__all__ = [
    "ID_PROCESS_COUNTER",
    "PROCESS_CATEGORY",
    "PROCESSOR_CATEGORY",
    "AbstractCounterHandle",
    "AbstractCounterProvider",
    "CounterBinding",
    "InstanceResolver",
    "PsutilCounterProvider",
    "TargetListener",
]

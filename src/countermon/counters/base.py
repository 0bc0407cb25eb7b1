"""
Defines the abstract interface of a counter subsystem.

This module provides:
- AbstractCounterHandle: a live, resource-owning handle to one concrete
  (category, counter, instance) triple.
- AbstractCounterProvider: the enumerable/queryable service that lists the
  live instance names of a category and opens handles.

Any OS metrics API with enumerable, named instances can implement these two
classes; the resolution and binding logic only ever talks to this interface.
"""

import logging
from abc import ABC, abstractmethod
from typing import List

logger = logging.getLogger(__name__)

PROCESS_CATEGORY = "Process"
"""Category whose instances are OS processes."""

ID_PROCESS_COUNTER = "ID Process"
"""Counter of the Process category holding the OS process id of an instance."""


class AbstractCounterHandle(ABC):
    """
    A live handle to one counter instance.

    Handles are exclusively owned by whoever opened them and must be closed
    on every exit path. A handle may also be closed by the subsystem itself
    (the instance was torn down), in which case ``closed`` becomes True and
    reads raise ``CounterInvalidError``.
    """

    def __init__(self, category: str, counter: str, instance: str):
        self.category = category
        self.counter = counter
        self.instance = instance

    @property
    @abstractmethod
    def closed(self) -> bool:
        """True once the handle was released or invalidated."""
        pass

    @abstractmethod
    def next_value(self) -> float:
        """
        Read the next calculated value of the counter.

        Rate-style counters compute the value against the previous read, so
        the first read after opening is a meaningless baseline.

        Raises:
            CounterInvalidError: If the underlying instance became invalid.
        """
        pass

    @abstractmethod
    def raw_value(self) -> float:
        """
        Read the instantaneous raw value without touching the rate baseline.

        Raises:
            CounterInvalidError: If the underlying instance became invalid.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the handle. Must be safe to call more than once."""
        pass

    def __enter__(self) -> "AbstractCounterHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(category={self.category!r}, "
            f"counter={self.counter!r}, instance={self.instance!r}, closed={self.closed})"
        )


class AbstractCounterProvider(ABC):
    """
    Abstract base class for counter subsystems.

    Implementations are queried on every resolution attempt; they must not
    hand out cached instance lists.
    """

    @abstractmethod
    def instance_names(self, category: str) -> List[str]:
        """
        Return the live instance names of a category.

        Raises:
            CounterError: If the category does not exist.
        """
        pass

    @abstractmethod
    def open(self, category: str, counter: str, instance: str) -> AbstractCounterHandle:
        """
        Open a handle to a concrete counter instance.

        Raises:
            CounterError: If the category or counter does not exist, or the
                          instance is not currently live.
        """
        pass

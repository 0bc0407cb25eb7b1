"""
Target and counter-lifecycle data models.

This module contains the structures that describe what is being observed
(logical targets), the ephemeral process records used during resolution,
and the lifecycle states of a counter binding.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class BindingState(Enum):
    """Lifecycle states of a CounterBinding."""

    UNBOUND = "unbound"
    BOUND = "bound"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class ProcessRecord:
    """
    A (name, pid) pair from OS process enumeration or listing-utility output.

    Records are re-derived on every resolution attempt and never cached
    across process restarts.
    """

    name: str
    pid: int


@dataclass(frozen=True)
class LogicalTarget:
    """
    A named thing to monitor, independent of which OS process backs it.

    Exactly one of ``instance`` and ``app_pool`` is set:

    - ``instance`` is an instance specifier: a literal instance name, a
      pipe-delimited list of candidates, or a process-name hint.
    - ``app_pool`` names a process-hosted target whose instance specifier
      is derived from the worker-process listing on every revalidation.
    """

    # Metric key under which samples are published (e.g., "web.default.cpu").
    key: str
    # Counter category (e.g., "Process").
    category: str
    # Counter name within the category (e.g., "% Processor Time").
    counter: str
    instance: Optional[str] = None
    app_pool: Optional[str] = None
    # Seconds between two samples of this target.
    interval_seconds: float = 10.0

    @property
    def is_process_hosted(self) -> bool:
        return self.app_pool is not None

    def describe(self) -> str:
        source = f"app_pool={self.app_pool}" if self.is_process_hosted else f"instance={self.instance}"
        return f"{self.key} ({self.category}/{self.counter}, {source})"

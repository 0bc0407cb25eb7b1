"""
Counter provider implementation using the 'psutil' library.

This module exposes two counter categories with the naming conventions of
the Windows performance counter subsystem, so that instance resolution
behaves the same on any platform psutil supports:

- ``Process``: one instance per running process, named after the process
  without its ``.exe`` suffix. Same-named processes get ``#1``, ``#2``, ...
  suffixes in pid order, so an instance name shifts whenever a process with
  the same name starts or exits.
- ``Processor``: ``_Total`` plus one instance per logical CPU.

Rate counters (``% Processor Time``, ``IO ... Bytes/sec``) are computed
against the previous read of the same handle. The first read after opening
has nothing to compare with and returns a meaningless 0.0 baseline.
"""

import logging
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

import psutil

from ..system.processes import strip_executable_suffix
from ..validation import CounterError, CounterInvalidError
from .base import (
    ID_PROCESS_COUNTER,
    PROCESS_CATEGORY,
    AbstractCounterHandle,
    AbstractCounterProvider,
)

logger = logging.getLogger(__name__)

PROCESSOR_CATEGORY = "Processor"
TOTAL_INSTANCE = "_Total"


def _cpu_seconds(proc: psutil.Process) -> float:
    times = proc.cpu_times()
    return times.user + times.system


def _handle_count(proc: psutil.Process) -> float:
    if hasattr(proc, "num_handles"):
        return float(proc.num_handles())
    return float(proc.num_fds())


# Raw readers of the Process category, and the scale applied to the
# per-second delta for rate counters (None means "not a rate").
_PROCESS_COUNTERS: Dict[str, Tuple[Callable[[psutil.Process], float], Optional[float]]] = {
    ID_PROCESS_COUNTER: (lambda p: float(p.pid), None),
    "% Processor Time": (_cpu_seconds, 100.0),
    "Working Set": (lambda p: float(p.memory_info().rss), None),
    "Virtual Bytes": (lambda p: float(p.memory_info().vms), None),
    "Thread Count": (lambda p: float(p.num_threads()), None),
    "Handle Count": (_handle_count, None),
    "IO Read Bytes/sec": (lambda p: float(p.io_counters().read_bytes), 1.0),
    "IO Write Bytes/sec": (lambda p: float(p.io_counters().write_bytes), 1.0),
}

_PROCESSOR_COUNTERS = ("% Processor Time", "% User Time", "% Idle Time")


class _PsutilCounterHandle(AbstractCounterHandle):
    """
    Shared rate computation for psutil-backed handles.

    Subclasses implement ``_read`` returning ``(raw, clock)``; a rate value
    is ``(raw - previous_raw) / (clock - previous_clock) * scale``.
    """

    def __init__(self, category: str, counter: str, instance: str, scale: Optional[float]):
        super().__init__(category, counter, instance)
        self._scale = scale
        self._previous: Optional[Tuple[float, float]] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _read(self) -> Tuple[float, float]:
        raise NotImplementedError

    def _checked_read(self) -> Tuple[float, float]:
        if self._closed:
            raise CounterInvalidError(f"Counter handle for instance '{self.instance}' is closed")
        return self._read()

    def next_value(self) -> float:
        raw, clock = self._checked_read()
        if self._scale is None:
            return raw

        previous, self._previous = self._previous, (raw, clock)
        if previous is None:
            return 0.0
        elapsed = clock - previous[1]
        if elapsed <= 0:
            return 0.0
        return (raw - previous[0]) / elapsed * self._scale

    def raw_value(self) -> float:
        return self._checked_read()[0]

    def close(self) -> None:
        self._closed = True


class ProcessCounterHandle(_PsutilCounterHandle):
    """Handle bound to one OS process for the lifetime of that process."""

    def __init__(self, counter: str, instance: str, pid: int):
        reader, scale = _PROCESS_COUNTERS[counter]
        super().__init__(PROCESS_CATEGORY, counter, instance, scale)
        self._reader = reader
        try:
            self._process = psutil.Process(pid)
        except psutil.NoSuchProcess as e:
            raise CounterError(f"Instance '{instance}' (pid {pid}) exited while opening") from e

    @property
    def pid(self) -> int:
        return self._process.pid

    def _read(self) -> Tuple[float, float]:
        # is_running() also detects pid reuse by a different process.
        if not self._process.is_running():
            self._closed = True
            raise CounterInvalidError(f"Process instance '{self.instance}' is no longer running")
        try:
            return self._reader(self._process), time.monotonic()
        except psutil.NoSuchProcess as e:
            self._closed = True
            raise CounterInvalidError(f"Process instance '{self.instance}' is no longer running") from e
        except psutil.AccessDenied as e:
            raise CounterError(f"Access denied reading '{self.counter}' of '{self.instance}'") from e
        except AttributeError as e:
            raise CounterError(f"Counter '{self.counter}' is not supported on this platform") from e


class ProcessorCounterHandle(_PsutilCounterHandle):
    """Handle to the system-wide or one per-CPU processor instance."""

    def __init__(self, counter: str, instance: str):
        super().__init__(PROCESSOR_CATEGORY, counter, instance, 100.0)
        self._cpu_index = None if instance == TOTAL_INSTANCE else int(instance)

    def _read(self) -> Tuple[float, float]:
        if self._cpu_index is None:
            times = psutil.cpu_times()
        else:
            per_cpu = psutil.cpu_times(percpu=True)
            if self._cpu_index >= len(per_cpu):
                self._closed = True
                raise CounterInvalidError(f"Processor instance '{self.instance}' disappeared")
            times = per_cpu[self._cpu_index]

        total = sum(times)
        idle = times.idle + getattr(times, "iowait", 0.0)
        if self.counter == "% User Time":
            raw = times.user
        elif self.counter == "% Idle Time":
            raw = idle
        else:
            raw = total - idle
        return raw, total


class PsutilCounterProvider(AbstractCounterProvider):
    """
    Counter provider backed by psutil.

    Every call re-enumerates processes; nothing is cached between calls.
    """

    CATEGORIES: List[str] = [PROCESS_CATEGORY, PROCESSOR_CATEGORY]

    def _process_instances(self) -> Dict[str, int]:
        """Map process-category instance names to pids."""
        groups: Dict[str, List[int]] = defaultdict(list)
        for proc in psutil.process_iter(["pid", "name"]):
            name = proc.info.get("name")
            if not name:
                continue
            groups[strip_executable_suffix(name)].append(proc.info["pid"])

        instances: Dict[str, int] = {}
        for name in sorted(groups, key=str.lower):
            for index, pid in enumerate(sorted(groups[name])):
                instances[name if index == 0 else f"{name}#{index}"] = pid
        return instances

    def instance_names(self, category: str) -> List[str]:
        if category == PROCESS_CATEGORY:
            return list(self._process_instances())
        if category == PROCESSOR_CATEGORY:
            cpu_count = psutil.cpu_count(logical=True) or 0
            return [TOTAL_INSTANCE] + [str(i) for i in range(cpu_count)]
        raise CounterError(f"Category '{category}' does not exist")

    def open(self, category: str, counter: str, instance: str) -> AbstractCounterHandle:
        if category == PROCESS_CATEGORY:
            if counter not in _PROCESS_COUNTERS:
                raise CounterError(f"Counter '{counter}' does not exist in category '{category}'")
            instances = self._process_instances()
            pid = instances.get(instance)
            if pid is None:
                lowered = instance.lower()
                pid = next((p for name, p in instances.items() if name.lower() == lowered), None)
            if pid is None:
                raise CounterError(f"Instance '{instance}' does not exist in category '{category}'")
            logger.debug(f"Opening {category}/{counter} for instance '{instance}' (pid {pid})")
            return ProcessCounterHandle(counter, instance, pid)

        if category == PROCESSOR_CATEGORY:
            if counter not in _PROCESSOR_COUNTERS:
                raise CounterError(f"Counter '{counter}' does not exist in category '{category}'")
            if instance not in self.instance_names(category):
                raise CounterError(f"Instance '{instance}' does not exist in category '{category}'")
            return ProcessorCounterHandle(counter, instance)

        raise CounterError(f"Category '{category}' does not exist")

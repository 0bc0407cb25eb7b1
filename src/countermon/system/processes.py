"""
Process directory: worker-process listings and process-id lookups.

This module maps a logical application pool to the OS processes currently
serving it, and maps OS process ids back to the instance names used by the
``Process`` counter category (which add ``#N`` suffixes to same-named
processes and therefore differ from plain OS process names).
"""

import logging
import re
from typing import List, Optional, Sequence, Tuple, Union

import psutil

from ..counters.base import ID_PROCESS_COUNTER, PROCESS_CATEGORY, AbstractCounterProvider
from ..models.targets import ProcessRecord
from ..validation import CounterError, ProcessListingError
from .commands import DEFAULT_COMMAND_TIMEOUT, run_command

logger = logging.getLogger(__name__)


def strip_executable_suffix(name: str) -> str:
    """Return a process name without a trailing ``.exe``.

    Examples:
        >>> strip_executable_suffix("w3wp.exe")
        'w3wp'
    """
    if name.lower().endswith(".exe"):
        return name[:-4]
    return name


def parse_worker_processes(output: str, pool_name: str) -> List[ProcessRecord]:
    """Extract worker processes of one pool from listing-utility output.

    Lines look like ``WP "4821" (applicationPool:DefaultAppPool)``. Matching
    is case-insensitive, ignores unrelated output, and requires the pool
    name to match exactly (``Default`` never matches ``DefaultAppPool``).

    Args:
        output: Raw stdout of the listing utility.
        pool_name: Application pool to look for.

    Returns:
        Records in output order; empty if the pool has no running worker.
    """
    pattern = re.compile(
        r'WP\s+"(?P<id>[0-9]+)"\s+\(applicationPool:' + re.escape(pool_name) + r'\)',
        re.IGNORECASE,
    )
    return [
        ProcessRecord(name=pool_name, pid=int(match.group("id")))
        for match in pattern.finditer(output)
    ]


class ProcessDirectory:
    """
    Queries the OS for worker processes and process-category instances.

    Nothing is cached: every call re-runs the listing utility or re-enumerates
    the process category, since process ids and instance names change
    whenever a worker is recycled.
    """

    def __init__(
        self,
        provider: AbstractCounterProvider,
        listing_command: Union[str, Sequence[str]],
        default_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ):
        self.provider = provider
        self.listing_command = listing_command
        self.default_timeout = default_timeout

    def list_worker_processes(self, pool_name: str, timeout: Optional[float] = None) -> List[ProcessRecord]:
        """
        Run the listing utility and return the worker processes of a pool.

        Args:
            pool_name: Name of the application pool.
            timeout: Seconds before the utility is killed; defaults to
                     the directory's configured timeout.

        Returns:
            Matching process records, empty when the pool is not running.

        Raises:
            ProcessListingError: If the utility could not run, timed out or
                                 exited with a non-zero status.
        """
        effective_timeout = self.default_timeout if timeout is None else timeout
        result = run_command(self.listing_command, timeout=effective_timeout)

        if result.timed_out:
            raise ProcessListingError(
                f"Listing command timed out after {effective_timeout}s while looking up pool '{pool_name}'"
            )
        if result.returncode != 0:
            raise ProcessListingError(
                f"Listing command failed with exit code {result.returncode} "
                f"while looking up pool '{pool_name}': {result.stderr.strip()}"
            )

        records = parse_worker_processes(result.stdout, pool_name)
        logger.debug(f"Pool '{pool_name}' worker processes: {[r.pid for r in records]}")
        return records

    def find_process_id_by_name(self, prefix: str) -> List[Tuple[str, int]]:
        """
        Pair ``Process`` category instances starting with ``prefix`` with their pids.

        The pid is read from each instance's ``ID Process`` counter. Instances
        that disappear between enumeration and read are skipped.
        """
        try:
            instances = self.provider.instance_names(PROCESS_CATEGORY)
        except CounterError as e:
            logger.error(f"Unable to enumerate '{PROCESS_CATEGORY}' instances: {e}")
            return []

        lowered_prefix = prefix.lower()
        pairs: List[Tuple[str, int]] = []
        for instance in instances:
            if not instance.lower().startswith(lowered_prefix):
                continue
            try:
                with self.provider.open(PROCESS_CATEGORY, ID_PROCESS_COUNTER, instance) as handle:
                    pairs.append((instance, int(handle.raw_value())))
            except CounterError as e:
                logger.debug(f"Skipping instance '{instance}': {e}")
        return pairs

    def get_processes_by_name(self, name: str) -> List[ProcessRecord]:
        """Return running OS processes whose name equals ``name``, ordered by pid."""
        wanted = strip_executable_suffix(name).lower()
        records: List[ProcessRecord] = []
        for proc in psutil.process_iter(["pid", "name"]):
            try:
                proc_name = proc.info["name"] or ""
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            if strip_executable_suffix(proc_name).lower() == wanted:
                records.append(ProcessRecord(name=proc_name, pid=proc.info["pid"]))
        return sorted(records, key=lambda record: record.pid)

"""
Listener for counters of process-hosted targets (application pools).

The worker process serving an application pool is replaced whenever the pool
recycles, and with it the counter instance to sample. The TargetListener
re-derives the instance specifier from the worker-process listing on a fixed
schedule, independent of binding health, and swaps its CounterBinding when
the specifier changes.
"""

import logging
import time
from typing import TYPE_CHECKING, Optional

from ..validation import CounterError, ProcessListingError, ResolutionError
from .base import AbstractCounterProvider
from .binding import CounterBinding
from .resolver import InstanceResolver, find_instance_for_pid

if TYPE_CHECKING:
    from ..system.processes import ProcessDirectory

logger = logging.getLogger(__name__)


class TargetListener:
    """
    Reports counter values of one application pool's current worker process.

    Not thread-safe: one listener must not be used by two callers at once.
    """

    def __init__(
        self,
        app_pool: str,
        category: str,
        counter: str,
        directory: "ProcessDirectory",
        provider: AbstractCounterProvider,
        resolver: InstanceResolver,
        worker_process_name: str = "w3wp",
        listing_timeout: float = 30.0,
        revalidate_interval: float = 0.0,
    ):
        """
        Args:
            app_pool: Name of the application pool to follow.
            category: Counter category name.
            counter: Counter name.
            directory: Source of worker-process listings.
            provider: Counter subsystem.
            resolver: Instance resolver used by the bindings.
            worker_process_name: Process-category prefix of worker processes.
            listing_timeout: Seconds before the listing utility is killed.
            revalidate_interval: Seconds between two derivations of the
                                 specifier; 0 re-derives on every report.
        """
        self.app_pool = app_pool
        self.category = category
        self.counter = counter
        self.directory = directory
        self.provider = provider
        self.resolver = resolver
        self.worker_process_name = worker_process_name
        self.listing_timeout = listing_timeout
        self.revalidate_interval = revalidate_interval

        self.specifier: Optional[str] = None
        self._binding: Optional[CounterBinding] = None
        self._last_derivation: Optional[float] = None

    @property
    def binding(self) -> Optional[CounterBinding]:
        return self._binding

    def derive_specifier(self) -> Optional[str]:
        """
        Determine the instance specifier of the pool's current worker process.

        Returns:
            The instance name, or None if the pool is not running or its
            worker has no counter instance yet.

        Raises:
            ProcessListingError: If the listing utility failed or timed out.
        """
        workers = self.directory.list_worker_processes(self.app_pool, timeout=self.listing_timeout)
        if not workers:
            logger.debug(f"Application pool '{self.app_pool}' has no running worker process")
            return None
        pid = workers[0].pid

        if self.resolver.is_pid_suffixed(self.category):
            try:
                instances = self.provider.instance_names(self.category)
            except CounterError as e:
                logger.error(f"Unable to enumerate instances of category '{self.category}': {e}")
                return None
            return find_instance_for_pid(instances, pid)

        for instance, instance_pid in self.directory.find_process_id_by_name(self.worker_process_name):
            if instance_pid == pid:
                return instance

        logger.debug(f"No '{self.worker_process_name}' instance carries pid {pid} of pool '{self.app_pool}'")
        return None

    def _derivation_due(self) -> bool:
        if self._last_derivation is None or self.specifier is None:
            return True
        return time.monotonic() - self._last_derivation >= self.revalidate_interval

    def _discard_binding(self) -> None:
        if self._binding is not None:
            self._binding.close()
            self._binding = None

    def load_specifier(self) -> bool:
        """
        Re-derive the specifier and drop a binding that no longer matches.

        Returns:
            True if a specifier is known after the call.

        Raises:
            ProcessListingError: If the listing utility failed or timed out.
        """
        new_specifier = self.derive_specifier()
        self._last_derivation = time.monotonic()
        if new_specifier is None:
            return False

        if new_specifier != self.specifier:
            if self.specifier is not None:
                logger.info(
                    f"Application pool '{self.app_pool}' moved from instance "
                    f"'{self.specifier}' to '{new_specifier}'"
                )
            self._discard_binding()
            self.specifier = new_specifier
        return True

    def report(self) -> Optional[float]:
        """
        Sample the counter of the pool's current worker process.

        Returns:
            The counter value, or None when no instance is known yet, the
            listing failed, or the binding is being (re)established. An empty
            derivation keeps sampling the instance already bound.
        """
        if self._derivation_due():
            try:
                if not self.load_specifier() and self.specifier is None:
                    # Nothing bound yet; an empty derivation keeps a known instance.
                    return None
            except ProcessListingError as e:
                logger.error(f"Worker process lookup for pool '{self.app_pool}' failed: {e}")
                return None

        if self._binding is None:
            binding = CounterBinding(
                self.category, self.counter, self.specifier, self.provider, self.resolver
            )
            try:
                binding.open()
            except ResolutionError as e:
                logger.error(f"Unable to bind counter for pool '{self.app_pool}': {e}")
                binding.close()
                return None
            self._binding = binding

        return self._binding.sample()

    def close(self) -> None:
        """Release the binding. Safe to call more than once."""
        self._discard_binding()

    def __enter__(self) -> "TargetListener":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

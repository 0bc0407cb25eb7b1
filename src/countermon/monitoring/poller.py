"""
Single-threaded polling of logical targets.

The PollingMonitor owns one sampler per logical target (a TargetListener
for application-pool targets, a CounterBinding for the rest), samples each
target on its own interval and forwards values to a metrics channel.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ..channels.base import MetricsChannel
from ..counters.base import AbstractCounterProvider
from ..counters.binding import CounterBinding
from ..counters.listener import TargetListener
from ..counters.resolver import InstanceResolver
from ..models.config import MonitorConfig
from ..models.targets import LogicalTarget
from ..system.processes import ProcessDirectory

logger = logging.getLogger(__name__)

Sampler = Union[TargetListener, CounterBinding]


@dataclass
class PollStats:
    """Running counters of one monitor session."""

    polls: int = 0
    samples_reported: int = 0
    samples_missing: int = 0
    errors: int = 0
    # Samples missing per target key.
    missing_by_key: Dict[str, int] = field(default_factory=dict)


class PollingMonitor:
    """
    Drives the sampling of a fixed set of logical targets.

    No background threads are used: ``poll_once`` samples every target that
    is due and ``run`` repeats it with an interruptible sleep until
    ``request_shutdown`` is called.
    """

    def __init__(
        self,
        targets: List[LogicalTarget],
        channel: MetricsChannel,
        directory: ProcessDirectory,
        provider: AbstractCounterProvider,
        resolver: InstanceResolver,
        monitor_config: Optional[MonitorConfig] = None,
    ):
        self.targets = list(targets)
        self.channel = channel
        self.directory = directory
        self.provider = provider
        self.resolver = resolver
        self.monitor_config = monitor_config or MonitorConfig()
        self.stats = PollStats()

        self._samplers: Dict[str, Sampler] = {
            target.key: self._create_sampler(target) for target in self.targets
        }
        self._next_due: Dict[str, float] = {target.key: 0.0 for target in self.targets}
        self._stop_requested = False
        logger.info(f"PollingMonitor initialized with {len(self.targets)} targets")

    def _create_sampler(self, target: LogicalTarget) -> Sampler:
        if target.is_process_hosted:
            return TargetListener(
                app_pool=target.app_pool,
                category=target.category,
                counter=target.counter,
                directory=self.directory,
                provider=self.provider,
                resolver=self.resolver,
                worker_process_name=self.monitor_config.worker_process_name,
                listing_timeout=self.monitor_config.listing_timeout,
                revalidate_interval=self.monitor_config.revalidate_interval,
            )
        return CounterBinding(
            target.category, target.counter, target.instance, self.provider, self.resolver
        )

    def sampler_for(self, key: str) -> Sampler:
        return self._samplers[key]

    def sample_target(self, target: LogicalTarget) -> Optional[float]:
        """
        Take one sample of a target; never raises.

        Unexpected exceptions are logged and counted as a missing sample so
        one misbehaving target cannot stop the loop.
        """
        sampler = self._samplers[target.key]
        try:
            if isinstance(sampler, TargetListener):
                return sampler.report()
            return sampler.sample()
        except Exception as e:
            self.stats.errors += 1
            logger.error(f"Unexpected error sampling {target.describe()}: {e}", exc_info=True)
            return None

    def poll_once(self, now: Optional[float] = None) -> Dict[str, Optional[float]]:
        """
        Sample every target that is due and forward values to the channel.

        Args:
            now: Monotonic timestamp to schedule against; defaults to now.

        Returns:
            Mapping of sampled target keys to their value (None if unavailable).
        """
        now = time.monotonic() if now is None else now
        self.stats.polls += 1
        results: Dict[str, Optional[float]] = {}

        for target in self.targets:
            if now < self._next_due[target.key]:
                continue
            self._next_due[target.key] = now + target.interval_seconds

            value = self.sample_target(target)
            results[target.key] = value
            if value is None:
                self.stats.samples_missing += 1
                self.stats.missing_by_key[target.key] = self.stats.missing_by_key.get(target.key, 0) + 1
                logger.debug(f"No sample for {target.key}")
                continue

            self.stats.samples_reported += 1
            try:
                self.channel.report(target.key, value)
            except Exception as e:
                self.stats.errors += 1
                logger.error(f"Channel failed to report {target.key}: {e}")

        return results

    def seconds_until_next_due(self, now: Optional[float] = None) -> float:
        now = time.monotonic() if now is None else now
        if not self._next_due:
            return self.monitor_config.interval_seconds
        return max(0.0, min(self._next_due.values()) - now)

    def request_shutdown(self) -> None:
        logger.info("Shutdown requested for PollingMonitor")
        self._stop_requested = True

    def run(self, max_iterations: Optional[int] = None) -> PollStats:
        """
        Poll until shutdown is requested or ``max_iterations`` polls ran.

        Returns:
            The session statistics.
        """
        logger.info("PollingMonitor loop started.")
        iterations = 0
        while not self._stop_requested:
            self.poll_once()
            iterations += 1
            if max_iterations is not None and iterations >= max_iterations:
                break

            # Interruptible sleep so a shutdown request is honoured quickly.
            sleep_end_time = time.monotonic() + self.seconds_until_next_due()
            while not self._stop_requested and time.monotonic() < sleep_end_time:
                time.sleep(min(0.05, max(0.0, sleep_end_time - time.monotonic())))

        logger.info(
            f"PollingMonitor loop finished after {iterations} iterations: "
            f"{self.stats.samples_reported} reported, {self.stats.samples_missing} missing"
        )
        return self.stats

    def close(self) -> None:
        """Release every binding and close the channel."""
        for sampler in self._samplers.values():
            sampler.close()
        self.channel.close()

    def __enter__(self) -> "PollingMonitor":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

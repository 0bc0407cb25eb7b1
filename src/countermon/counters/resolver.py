"""
Instance name resolution.

Maps an instance specifier (a literal name, a pipe-delimited list of
candidates, or a process-name hint) to the concrete instance name the
counter subsystem currently exposes for a category.
"""

import logging
import re
from typing import TYPE_CHECKING, Iterable, List, Optional

from ..models.config import DEFAULT_PID_SUFFIXED_CATEGORIES
from ..validation import CounterError
from .base import AbstractCounterProvider

if TYPE_CHECKING:
    from ..system.processes import ProcessDirectory

logger = logging.getLogger(__name__)

# Instance names such as "w3wp[4821]" carry the owning process id.
PID_MARKER_PATTERN = re.compile(r"\[(?P<pid>[0-9]+)\]$")


def pid_marker(pid: int) -> str:
    """Return the instance-name suffix used by pid-suffixed categories."""
    return f"[{pid}]"


def find_instance_for_pid(instances: Iterable[str], pid: int) -> Optional[str]:
    """Return the first instance name ending with the pid marker of ``pid``."""
    suffix = pid_marker(pid)
    return next((name for name in instances if name.endswith(suffix)), None)


def _match_ignore_case(instances: List[str], candidate: str) -> Optional[str]:
    lowered = candidate.lower()
    return next((name for name in instances if name.lower() == lowered), None)


class InstanceResolver:
    """
    Resolves instance specifiers against live instance names.

    The fallback chain, in priority order:

    1. A specifier with a pid marker (``name[1234]``) on a pid-suffixed
       category is already resolved; it is only checked for liveness.
    2. An exact, case-insensitive match.
    3. The first live alternative of a pipe-delimited list.
    4. For pid-suffixed categories, the instance carrying the pid of the
       first OS process named like the specifier.
    5. The first live instance, whatever it is.

    Step 5 means a sample may come from an unintended instance when several
    exist and nothing matched; it is logged at WARNING level every time.
    Every call enumerates the live instances exactly once and only ever
    returns a name from that enumeration.
    """

    def __init__(
        self,
        provider: AbstractCounterProvider,
        directory: Optional["ProcessDirectory"] = None,
        pid_suffixed_categories: Optional[Iterable[str]] = None,
    ):
        self.provider = provider
        self.directory = directory
        categories = (
            DEFAULT_PID_SUFFIXED_CATEGORIES
            if pid_suffixed_categories is None
            else pid_suffixed_categories
        )
        self._pid_suffixed = {category.lower() for category in categories}

    def is_pid_suffixed(self, category: str) -> bool:
        return category.lower() in self._pid_suffixed

    def resolve(self, category: str, specifier: str) -> Optional[str]:
        """
        Determine the current concrete instance name for a specifier.

        Args:
            category: Counter category name.
            specifier: Instance specifier from configuration.

        Returns:
            A name present in the category's live instances, or None.
        """
        try:
            instances = self.provider.instance_names(category)
        except CounterError as e:
            logger.error(f"Unable to enumerate instances of category '{category}': {e}")
            return None

        pid_suffixed = self.is_pid_suffixed(category)

        if pid_suffixed and PID_MARKER_PATTERN.search(specifier):
            matched = _match_ignore_case(instances, specifier)
            if matched is None:
                logger.warning(
                    f"Instance '{specifier}' of category '{category}' is no longer present"
                )
            return matched

        matched = _match_ignore_case(instances, specifier)
        if matched is not None:
            return matched

        if "|" in specifier:
            for alternative in (part.strip() for part in specifier.split("|")):
                if not alternative:
                    continue
                matched = _match_ignore_case(instances, alternative)
                if matched is not None:
                    logger.debug(f"Resolved '{specifier}' to alternative '{matched}'")
                    return matched

        if pid_suffixed:
            matched = self._resolve_by_process_name(category, specifier, instances)
            if matched is not None:
                return matched

        if instances:
            logger.warning(
                f"No instance of category '{category}' matches '{specifier}'; "
                f"falling back to the first available instance '{instances[0]}'"
            )
            return instances[0]

        logger.debug(f"Category '{category}' has no live instances")
        return None

    def _resolve_by_process_name(
        self, category: str, process_name: str, instances: List[str]
    ) -> Optional[str]:
        """Find the instance suffixed with the pid of the first process named ``process_name``."""
        if self.directory is None:
            logger.debug("No process directory configured; skipping process-name resolution")
            return None

        processes = self.directory.get_processes_by_name(process_name)
        if not processes:
            logger.warning(f"Could not find any processes by the name {process_name}")
            return None
        if len(processes) > 1:
            logger.warning(
                f"{len(processes)} processes are named {process_name} "
                f"(pids {[p.pid for p in processes]}); using pid {processes[0].pid}, "
                "the match may be ambiguous"
            )

        matched = find_instance_for_pid(instances, processes[0].pid)
        if matched is None:
            logger.warning(
                f"Could not find any counter instances that match the process name {process_name}. "
                f"Processes={[p.name for p in processes]} Instances={instances}"
            )
        return matched

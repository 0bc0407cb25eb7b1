"""
System interaction utilities.

This module provides the process-level functionality the counter core needs:

- Running external utilities with a bounded timeout and kill-on-overrun
- Parsing worker-process listings for application pools
- Mapping OS process ids to process-category counter instance names
"""

from .commands import CommandResult, run_command, split_command
from .processes import ProcessDirectory, parse_worker_processes, strip_executable_suffix

__all__ = [
    # Commands
    "CommandResult",
    "run_command",
    "split_command",
    # Processes
    "ProcessDirectory",
    "parse_worker_processes",
    "strip_executable_suffix",
]

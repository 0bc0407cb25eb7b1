"""
Configuration data models.

This module contains the configuration structures loaded from ``config.toml``:
global monitor settings, output channel settings and the target list.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .targets import LogicalTarget

DEFAULT_LISTING_COMMAND = r"C:\Windows\System32\inetsrv\appcmd.exe list WP"

DEFAULT_PID_SUFFIXED_CATEGORIES = [
    ".NET Data Provider for SqlServer",
    ".NET Data Provider for Oracle",
]


@dataclass
class MonitorConfig:
    """
    Global monitor behaviour, loaded from the ``[monitor]`` table.
    """

    # Default seconds between samples for targets that do not set their own.
    interval_seconds: float = 10.0
    # Command that lists worker processes (appcmd-style output).
    listing_command: str = DEFAULT_LISTING_COMMAND
    # Upper bound in seconds for one run of the listing command.
    listing_timeout: float = 30.0
    # Seconds between re-derivations of a process-hosted target; 0 = every poll.
    revalidate_interval: float = 0.0
    # Process-category name prefix of application pool worker processes.
    worker_process_name: str = "w3wp"
    # Categories that put the owning process id into instance names ("name[pid]").
    pid_suffixed_categories: List[str] = field(
        default_factory=lambda: list(DEFAULT_PID_SUFFIXED_CATEGORIES)
    )


@dataclass
class OutputConfig:
    """
    Metrics channel settings, loaded from the ``[output]`` table.
    """

    # "log" or "parquet".
    channel: str = "log"
    parquet_path: Path = Path("samples.parquet")
    # Rows buffered before the parquet channel writes to disk.
    flush_every: int = 100


@dataclass
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    monitor: MonitorConfig
    output: OutputConfig
    targets: List[LogicalTarget]

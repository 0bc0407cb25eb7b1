"""
Data models for the counter monitoring system.

Configuration Models:
- Global monitor settings and listing-utility parameters
- Output channel settings
- The list of logical targets to poll

Target Models:
- Logical targets and their instance specifiers
- Process records produced during resolution
- Counter binding lifecycle states
"""

from .config import AppConfig, MonitorConfig, OutputConfig
from .targets import BindingState, LogicalTarget, ProcessRecord

__all__ = [
    # Configuration
    "AppConfig",
    "MonitorConfig",
    "OutputConfig",
    # Targets
    "BindingState",
    "LogicalTarget",
    "ProcessRecord",
]

"""
Polling of logical targets.

Provides the PollingMonitor that samples configured targets and forwards
their values to a metrics channel.
"""

from .poller import PollingMonitor, PollStats

__all__ = ["PollingMonitor", "PollStats"]

"""
Command-line interface for countermon.
"""

from .main import main_cli

__all__ = ["main_cli"]

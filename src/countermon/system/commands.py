"""
Command execution utilities.

This module runs external utilities with a bounded timeout, capturing their
output and forcibly terminating them when they overrun.
"""

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import List, Sequence, Union

from ..validation import ErrorSeverity, handle_subprocess_error

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 30.0


@dataclass
class CommandResult:
    """Outcome of one external command run."""

    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def split_command(command: Union[str, Sequence[str]]) -> List[str]:
    """Split a command string into arguments.

    Windows paths keep their backslashes because the split is not POSIX
    style on that platform.

    Examples:
        >>> split_command("appcmd list WP")
        ['appcmd', 'list', 'WP']
    """
    if isinstance(command, str):
        return shlex.split(command, posix=os.name != "nt")
    return list(command)


def _kill_process(process: subprocess.Popen) -> None:
    """Forcibly terminate a child, logging and swallowing any failure."""
    try:
        process.kill()
    except ProcessLookupError as e:
        # Already exited between the timeout and the kill.
        logger.warning(f"Process {process.pid} already exited before kill: {e}")
    except PermissionError as e:
        logger.error(f"Access denied while killing process {process.pid}: {e}")
    except OSError as e:
        logger.error(f"Unable to kill process {process.pid}: {type(e).__name__}: {e}")


def run_command(
    command: Union[str, Sequence[str]], timeout: float = DEFAULT_COMMAND_TIMEOUT
) -> CommandResult:
    """Execute a command and capture its output, bounded by a timeout.

    If the command does not exit within ``timeout`` seconds it is killed and
    the result is flagged ``timed_out``. Errors raised while killing are
    logged and never propagate, since the timeout already decides the outcome.

    Args:
        command: Command string or argument list.
        timeout: Seconds to wait for the command to exit.

    Returns:
        CommandResult with the captured stdout/stderr.
        returncode is -1 when the command could not be started or timed out.
    """
    args = split_command(command)
    logger.debug(f"Executing command: {args} (timeout {timeout}s)")
    try:
        process = subprocess.Popen(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as e:
        logger.error(f"Command not found: {args[0] if args else command}: {e}")
        return CommandResult(-1, "", f"Error: Command not found '{args[0] if args else command}'")
    except OSError as e:
        handle_subprocess_error(e, " ".join(args), severity=ErrorSeverity.ERROR, reraise=False, logger=logger)
        return CommandResult(-1, "", f"Error: {e}")

    try:
        stdout, stderr = process.communicate(timeout=timeout)
        return CommandResult(process.returncode, stdout or "", stderr or "")
    except subprocess.TimeoutExpired:
        logger.warning(f"Command {args} did not exit within {timeout}s, killing it")
        _kill_process(process)
        try:
            stdout, stderr = process.communicate(timeout=1.0)
        except (subprocess.TimeoutExpired, OSError, ValueError) as e:
            logger.debug(f"Could not collect output of killed command: {e}")
            stdout, stderr = "", ""
        return CommandResult(-1, stdout or "", stderr or "", timed_out=True)

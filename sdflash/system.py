"""Thin wrappers around external commands.

All shelling out goes through run_command so callers see a missing
executable as ToolMissingError instead of a bare FileNotFoundError.
"""

import logging
import shlex
import shutil
import subprocess
from collections.abc import Sequence

from sdflash.errors import ToolMissingError

logger = logging.getLogger(__name__)


def require_tool(tool: str) -> str:
    """Return the absolute path of an executable.

    Raises:
        ToolMissingError: The executable is not on PATH.
    """
    path = shutil.which(tool)
    if path is None:
        raise ToolMissingError(tool)
    return path


def run_command(
    cmd: Sequence[str],
    *,
    capture_output: bool = True,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[str]:
    """Execute a command without a shell.

    The exit status is not checked; callers decide what a failure means.

    Args:
        cmd: Command and arguments.
        capture_output: Capture stdout/stderr as text instead of inheriting them.
        timeout: Optional timeout in seconds.

    Returns:
        The completed process.

    Raises:
        ToolMissingError: The executable does not exist.
    """
    logger.debug("Running: %s", shlex.join(cmd))
    try:
        result = subprocess.run(
            list(cmd),
            capture_output=capture_output,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as e:
        raise ToolMissingError(cmd[0]) from e

    if result.returncode != 0:
        logger.debug(
            "Command exited with %d: %s",
            result.returncode,
            (result.stderr or "").strip(),
        )
    return result


__all__ = ["require_tool", "run_command"]

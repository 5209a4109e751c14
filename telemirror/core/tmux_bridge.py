"""tmux bridge for telemirror - thin async wrappers over the tmux CLI.

All functions are stateless. Every tmux invocation has a bounded wait: a
hung tmux server surfaces as `SubprocessTimeoutError`, never as a hang.
The bridge never creates or kills sessions; mirror-mode startup owns them.
"""

from __future__ import annotations

import asyncio
import shutil
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

TMUX_BINARY = "tmux"

SUBPROCESS_TIMEOUT_QUICK = 5.0  # has-session, display-message, send-keys
SUBPROCESS_TIMEOUT_DEFAULT = 15.0  # capture-pane on large scrollback


class SubprocessTimeoutError(TimeoutError):
    """A tmux subprocess did not finish within its time budget."""

    def __init__(self, operation: str, timeout: float, pid: Optional[int] = None) -> None:
        super().__init__(f"{operation} timed out after {timeout}s")
        self.operation = operation
        self.timeout = timeout
        self.pid = pid


async def _kill_and_reap(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        return
    await process.wait()


async def communicate_with_timeout(
    process: asyncio.subprocess.Process,
    input_data: Optional[bytes],
    timeout: float,
    operation: str,
) -> tuple[bytes, bytes]:
    """`process.communicate()` with a deadline.

    Raises:
        SubprocessTimeoutError: If the process did not finish in time.
    """
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(input_data), timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.warning("Subprocess timed out, killing", operation=operation, timeout=timeout, pid=process.pid)
        await _kill_and_reap(process)
        raise SubprocessTimeoutError(operation, timeout, process.pid) from exc
    return stdout or b"", stderr or b""


async def run_tmux(*args: str, timeout: float = SUBPROCESS_TIMEOUT_QUICK) -> tuple[int, str, str]:
    """Run one tmux command and return (returncode, stdout, stderr).

    Raises:
        FileNotFoundError: If the tmux binary is not installed.
        SubprocessTimeoutError: If tmux did not answer in time.
    """
    cmd = [TMUX_BINARY, *args]
    process = await asyncio.create_subprocess_exec(
        *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
    )
    stdout, stderr = await communicate_with_timeout(process, None, timeout, f"tmux {args[0]}")
    returncode = process.returncode if process.returncode is not None else -1
    return (
        returncode,
        stdout.decode("utf-8", errors="replace"),
        stderr.decode("utf-8", errors="replace").strip(),
    )


def is_available() -> bool:
    """Check whether the tmux binary is on PATH."""
    return shutil.which(TMUX_BINARY) is not None


async def session_exists(session_name: str) -> bool:
    """Check if a tmux session (or `session:window` target) exists.

    Raises:
        FileNotFoundError: If the tmux binary is not installed.
        SubprocessTimeoutError: If tmux did not answer in time.
    """
    returncode, _, stderr = await run_tmux("has-session", "-t", session_name)
    if returncode != 0:
        logger.info("Session does not exist", session=session_name, returncode=returncode, stderr=stderr)
        return False
    logger.debug("Session exists", session=session_name)
    return True


async def send_literal(session_name: str, text: str) -> bool:
    """Type `text` into the pane exactly as given (no key-name lookup).

    Returns:
        True if tmux accepted the keys.
    """
    returncode, _, stderr = await run_tmux("send-keys", "-t", session_name, "-l", "--", text)
    if returncode != 0:
        logger.error("Failed to send text", session=session_name, returncode=returncode, stderr=stderr)
        return False
    return True


async def send_enter(session_name: str) -> bool:
    """Press Enter (C-m) in the pane."""
    returncode, _, stderr = await run_tmux("send-keys", "-t", session_name, "C-m")
    if returncode != 0:
        logger.error("Failed to send Enter", session=session_name, returncode=returncode, stderr=stderr)
        return False
    return True


async def capture_pane(session_name: str, lines: Optional[int] = None) -> str:
    """Capture pane output from a tmux session.

    Args:
        session_name: Session name
        lines: Number of lines to capture from scrollback (None = visible pane only)

    Returns:
        Captured output, or "" when tmux is unavailable or the capture failed
    """
    # -p = print to stdout, -J = join wrapped lines
    cmd = ["capture-pane", "-t", session_name, "-p", "-J"]
    if lines:
        cmd.extend(["-S", f"-{lines}"])

    try:
        returncode, stdout, stderr = await run_tmux(*cmd, timeout=SUBPROCESS_TIMEOUT_DEFAULT)
    except (FileNotFoundError, SubprocessTimeoutError) as e:
        logger.warning("Could not capture pane", session=session_name, error=str(e))
        return ""

    if returncode != 0:
        logger.warning("Failed to capture pane", session=session_name, returncode=returncode, stderr=stderr)
        return ""
    return stdout


async def current_session_name(fmt: str = "#{session_name}") -> Optional[str]:
    """Name of the tmux session this process runs in, if any.

    Args:
        fmt: tmux format string, e.g. "#{session_name}:#{window_name}".
    """
    try:
        returncode, stdout, _ = await run_tmux("display-message", "-p", fmt)
    except (FileNotFoundError, SubprocessTimeoutError):
        return None
    name = stdout.strip()
    if returncode != 0 or not name:
        return None
    return name

"""Best-effort browser launcher.

Opening the browser is a convenience: the authorization URL is always printed
first, so any failure here is logged and otherwise ignored.
"""

from __future__ import annotations

import subprocess
import sys

import structlog

logger = structlog.get_logger()


def browser_command(url: str, platform: str | None = None) -> list[str]:
    """Return the command that opens ``url`` in the default browser."""
    platform = platform or sys.platform
    if platform == "win32":
        # The empty string is the window title argument of ``start``.
        return ["cmd.exe", "/c", "start", "", url]
    if platform == "darwin":
        return ["open", url]
    return ["xdg-open", url]


def open_browser(url: str) -> None:
    """Spawn the platform browser command and forget about it."""
    command = browser_command(url)
    try:
        subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as exc:
        logger.debug("browser_launch_failed", command=command[0], error=str(exc))

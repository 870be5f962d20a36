from __future__ import annotations

import os
import shutil
import subprocess
from typing import Callable, Dict, Sequence

from .utils import logger

DEFAULT_TIMEOUT = 10.0

TOOL_FALLBACKS = {
    "lsof": "/usr/sbin/lsof",
    "ps": "/bin/ps",
    "kill": "/bin/kill",
}

Runner = Callable[[Sequence[str]], str]


class CommandError(RuntimeError):
    """An external tool could not be run or exited non-zero."""

    def __init__(self, message: str, returncode: int | None = None):
        super().__init__(message)
        self.message = message
        self.returncode = returncode


def resolve_tool(name: str) -> str:
    found = shutil.which(name, path=_subprocess_env()["PATH"])
    if found:
        return found
    return TOOL_FALLBACKS.get(name, name)


def run_command(args: Sequence[str], timeout: float = DEFAULT_TIMEOUT) -> str:
    """Run ``args`` and return its stdout.

    Raises :class:`CommandError` when the tool is missing, times out or exits
    with a non-zero status. The error carries stderr, or stdout when stderr
    is empty.
    """

    argv = list(args)
    try:
        proc = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=_subprocess_env(),
        )
    except FileNotFoundError as exc:
        raise CommandError(f"{argv[0]} not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise CommandError(f"{argv[0]} timed out after {timeout:.0f}s") from exc
    except (OSError, subprocess.SubprocessError) as exc:
        raise CommandError(str(exc)) from exc

    if proc.returncode != 0:
        diagnostic = (proc.stderr or "").strip() or (proc.stdout or "").strip()
        logger.debug("%s exited rc=%s: %s", argv[0], proc.returncode, diagnostic)
        raise CommandError(diagnostic or f"exit status {proc.returncode}", proc.returncode)
    return proc.stdout or ""


def _subprocess_env() -> Dict[str, str]:
    env = os.environ.copy()
    if "PATH" not in env or not env["PATH"]:
        env["PATH"] = "/usr/sbin:/usr/bin:/bin:/sbin"
    return env


__all__ = ["CommandError", "DEFAULT_TIMEOUT", "Runner", "resolve_tool", "run_command"]

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

import psutil

from .commands import CommandError, Runner, resolve_tool, run_command
from .utils import logger


class TerminationError(RuntimeError):
    def __init__(self, pid: int, reason: str):
        super().__init__(f"Failed to kill process {pid}: {reason}")
        self.pid = pid
        self.reason = reason


@dataclass(frozen=True)
class TerminationOutcome:
    pid: int
    success: bool
    error: Optional[str] = None


class ProcessTerminator:
    """Sends SIGKILL to one pid per ``kill`` invocation."""

    def __init__(self, runner: Runner = run_command):
        self._runner = runner
        self._kill = resolve_tool("kill")

    def terminate(self, pid: int) -> None:
        if not psutil.pid_exists(pid):
            raise TerminationError(pid, "No such process")
        try:
            self._runner([self._kill, "-9", str(pid)])
        except CommandError as exc:
            raise TerminationError(pid, exc.message) from exc
        logger.info("killed pid %s", pid)

    def terminate_all(self, pids: Iterable[int]) -> List[TerminationOutcome]:
        outcomes: List[TerminationOutcome] = []
        for pid in pids:
            try:
                self.terminate(pid)
            except TerminationError as exc:
                logger.info("kill failed for pid %s: %s", pid, exc.reason)
                outcomes.append(TerminationOutcome(pid, False, exc.reason))
            else:
                outcomes.append(TerminationOutcome(pid, True))
        return outcomes


__all__ = ["ProcessTerminator", "TerminationError", "TerminationOutcome"]

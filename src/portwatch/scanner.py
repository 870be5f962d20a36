"""Discover processes holding listening TCP sockets.

The scan runs in two phases. ``lsof`` lists every listening socket on the
machine, which gives pid -> ports. Each pid is then enriched with its working
directory and ``ps`` metrics. Only the first phase can fail the scan; a pid
whose enrichment fails is degraded or dropped on its own.
"""
from __future__ import annotations

import calendar
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .commands import CommandError, Runner, resolve_tool, run_command
from .frameworks import detect_framework
from .models import (
    UNKNOWN_DIRECTORY,
    ProcessRecord,
    ProcessStart,
    StartText,
    StartTimestamp,
)
from .utils import logger

# COMMAND PID USER FD TYPE DEVICE SIZE/OFF NODE NAME
LSOF_MIN_FIELDS = 9
DETAIL_TRAILING_FIELDS = 4
PORT_SUFFIX_CHARS = ")]"
DATE_FORMATS = ("%b %d %Y", "%b%d %Y")
MONTH_ABBREVIATIONS = frozenset(name.lower() for name in calendar.month_abbr if name)


class ScanError(RuntimeError):
    """The listening socket enumeration itself failed."""


@dataclass(frozen=True)
class ProcessDetails:
    command: str
    cpu_percent: float
    memory_percent: float
    memory_mb: float
    start: Optional[ProcessStart]


@dataclass
class ListeningSockets:
    ports: Dict[int, Set[int]]
    names: Dict[int, str]


def extract_port_from_token(token: str) -> Optional[int]:
    head, sep, tail = token.rpartition(":")
    if not sep:
        return None
    digits = tail.rstrip(PORT_SUFFIX_CHARS)
    if not digits.isdigit():
        return None
    port = int(digits)
    return port if port > 0 else None


def extract_port(tokens: Sequence[str]) -> Optional[int]:
    """Return the port of the right-most ``host:port`` token, if any."""

    for token in reversed(tokens):
        port = extract_port_from_token(token)
        if port is not None:
            return port
    return None


def parse_listening_sockets(output: str) -> ListeningSockets:
    ports: Dict[int, Set[int]] = {}
    names: Dict[int, str] = {}
    for line in output.splitlines():
        fields = line.split()
        if len(fields) < LSOF_MIN_FIELDS:
            continue
        try:
            pid = int(fields[1])
        except ValueError:
            continue
        if pid <= 0:
            continue
        port = extract_port(fields)
        if port is not None:
            ports.setdefault(pid, set()).add(port)
        names[pid] = fields[0]
    return ListeningSockets(ports=ports, names=names)


def parse_cwd(output: str) -> Optional[str]:
    for line in output.splitlines():
        fields = line.split()
        if "cwd" not in fields:
            continue
        for index, value in enumerate(fields):
            if value.startswith("/"):
                # NAME is the last column, so a path with spaces spans the rest
                return " ".join(fields[index:])
    return None


def parse_start_time(text: str, now: Optional[datetime] = None) -> Optional[ProcessStart]:
    """Parse the ``ps`` start column.

    ``HH:MM`` means today; ``Mon DD`` means that day of the current year.
    Anything else is kept verbatim as :class:`StartText`.
    """

    text = (text or "").strip()
    if not text:
        return None
    now = now or datetime.now()
    try:
        clock = datetime.strptime(text, "%H:%M")
    except ValueError:
        pass
    else:
        return StartTimestamp(
            now.replace(hour=clock.hour, minute=clock.minute, second=0, microsecond=0)
        )
    for fmt in DATE_FORMATS:
        try:
            return StartTimestamp(datetime.strptime(f"{text} {now.year}", fmt))
        except ValueError:
            continue
    return StartText(text)


def _start_extra_tokens(tokens: Sequence[str]) -> int:
    if len(tokens) < 2:
        return 0
    month, day = tokens[-2], tokens[-1]
    if month.lower() in MONTH_ABBREVIATIONS and day.isdigit() and len(day) <= 2:
        return 1
    return 0


def parse_process_details(output: str, now: Optional[datetime] = None) -> Optional[ProcessDetails]:
    """Parse one ``ps -o command=,%cpu=,%mem=,rss=,start=`` record.

    The command is the only column that may contain spaces, so the record is
    read from the right: start, rss, %mem and %cpu are the last four columns
    and everything before them is the command. A spaced ``Mon DD`` start
    spans two tokens.
    """

    tokens = output.split()
    trailing = DETAIL_TRAILING_FIELDS + _start_extra_tokens(tokens)
    if len(tokens) < trailing + 1:
        return None
    cpu_raw, mem_raw, rss_raw = tokens[-trailing : -trailing + 3]
    start_raw = " ".join(tokens[-trailing + 3 :])
    command = " ".join(tokens[:-trailing])
    try:
        cpu = float(cpu_raw)
        mem = float(mem_raw)
        rss_kb = int(rss_raw)
    except ValueError:
        return None
    if cpu < 0 or mem < 0 or rss_kb < 0:
        return None
    return ProcessDetails(
        command=command,
        cpu_percent=cpu,
        memory_percent=mem,
        memory_mb=rss_kb / 1024,
        start=parse_start_time(start_raw, now),
    )


class ProcessScanner:
    def __init__(
        self,
        runner: Runner = run_command,
        max_workers: int = 8,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._runner = runner
        self._max_workers = max(1, max_workers)
        self._clock = clock
        self._lsof = resolve_tool("lsof")
        self._ps = resolve_tool("ps")

    def scan(self) -> List[ProcessRecord]:
        sockets = self.list_listening()
        pids = sorted(pid for pid, ports in sockets.ports.items() if ports)
        if not pids:
            return []

        with ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(pids) * 2),
            thread_name_prefix="portwatch-scan",
        ) as pool:
            cwd_futures = {pid: pool.submit(self.resolve_working_directory, pid) for pid in pids}
            detail_futures = {pid: pool.submit(self._details_or_failure, pid) for pid in pids}
            records = list(
                self._join(pids, sockets, cwd_futures, detail_futures)
            )
        logger.debug("scan found %s listening processes", len(records))
        return records

    def list_listening(self) -> ListeningSockets:
        try:
            output = self._runner([self._lsof, "-iTCP", "-sTCP:LISTEN", "-P", "-n"])
        except CommandError as exc:
            raise ScanError(f"lsof failed: {exc.message}") from exc
        return parse_listening_sockets(output)

    def resolve_working_directory(self, pid: int) -> str:
        try:
            found = parse_cwd(
                self._runner([self._lsof, "-a", "-p", str(pid), "-d", "cwd"])
            )
        except CommandError as exc:
            logger.debug("lsof cwd lookup failed for pid %s: %s", pid, exc.message)
            found = None
        if found:
            return found

        try:
            output = self._runner([self._ps, "-o", "cwd=", "-p", str(pid)])
        except CommandError as exc:
            logger.debug("ps cwd lookup failed for pid %s: %s", pid, exc.message)
            return UNKNOWN_DIRECTORY
        trimmed = output.strip()
        if not trimmed or trimmed == "/":
            return UNKNOWN_DIRECTORY
        return trimmed

    def resolve_details(self, pid: int) -> Optional[ProcessDetails]:
        """Return parsed metrics, or None when ``ps`` answered with garbage.

        Raises :class:`CommandError` when ``ps`` itself failed.
        """

        output = self._runner(
            [self._ps, "-o", "command=,%cpu=,%mem=,rss=,start=", "-p", str(pid)]
        )
        return parse_process_details(output, self._clock())

    def _details_or_failure(self, pid: int) -> Tuple[bool, Optional[ProcessDetails]]:
        try:
            return True, self.resolve_details(pid)
        except CommandError as exc:
            logger.debug("ps details lookup failed for pid %s: %s", pid, exc.message)
            return False, None

    def _join(
        self,
        pids: Iterable[int],
        sockets: ListeningSockets,
        cwd_futures: Dict[int, Future],
        detail_futures: Dict[int, Future],
    ) -> Iterable[ProcessRecord]:
        for pid in pids:
            name = sockets.names.get(pid)
            if not name:
                continue
            answered, details = detail_futures[pid].result()
            if answered and details is None:
                logger.debug("dropping pid %s: unparseable ps metrics", pid)
                continue
            working_directory = cwd_futures[pid].result()
            command = details.command if details and details.command else name
            yield ProcessRecord(
                pid=pid,
                name=name,
                command=command,
                ports=tuple(sockets.ports[pid]),
                working_directory=working_directory,
                framework=detect_framework(command),
                cpu_percent=details.cpu_percent if details else 0.0,
                memory_percent=details.memory_percent if details else 0.0,
                memory_mb=details.memory_mb if details else 0.0,
                start=details.start if details else None,
            )


__all__ = [
    "ListeningSockets",
    "ProcessDetails",
    "ProcessScanner",
    "ScanError",
    "extract_port",
    "extract_port_from_token",
    "parse_cwd",
    "parse_listening_sockets",
    "parse_process_details",
    "parse_start_time",
]

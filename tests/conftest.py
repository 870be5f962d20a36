"""Shared fakes for the scanner, terminator and external tools."""

import threading
from datetime import datetime

import pytest

from portwatch.commands import CommandError
from portwatch.config import AppSettings
from portwatch.models import Framework, ProcessRecord, StartText, StartTimestamp
from portwatch.process_manager import TerminationOutcome
from portwatch.scanner import ScanError

NOW = datetime(2026, 10, 19, 12, 0)

LSOF_LISTEN = """\
COMMAND     PID   USER   FD   TYPE             DEVICE SIZE/OFF NODE NAME
node      41234    dev   23u  IPv4 0x1234567890abcdef      0t0  TCP 127.0.0.1:5173 (LISTEN)
node      41234    dev   24u  IPv6 0x1234567890abcdf0      0t0  TCP [::1]:5173 (LISTEN)
node      41234    dev   25u  IPv4 0x1234567890abcdf1      0t0  TCP *:3000 (LISTEN)
Python    51000    dev    5u  IPv4 0x1234567890abcdf2      0t0  TCP *:8000 (LISTEN)
postgres    812    dev    7u  IPv6 0x1234567890abcdf3      0t0  TCP [::1]:5432 (LISTEN)
"""


class FakeTools:
    """Callable standing in for ``run_command``; answers by argument shape."""

    def __init__(self):
        self.listen = LSOF_LISTEN
        self.lsof_cwd = {}
        self.ps_cwd = {}
        self.details = {}
        self.kill_failures = {}
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, argv):
        argv = list(argv)
        with self._lock:
            self.calls.append(argv)
        if "-iTCP" in argv:
            return self._answer(self.listen)
        if "-9" in argv:
            pid = int(argv[-1])
            if pid in self.kill_failures:
                raise CommandError(self.kill_failures[pid], 1)
            return ""
        pid = int(argv[argv.index("-p") + 1])
        if "-d" in argv:
            return self._answer(self.lsof_cwd.get(pid, CommandError("no cwd", 1)))
        if "cwd=" in argv:
            return self._answer(self.ps_cwd.get(pid, CommandError("no ps cwd", 1)))
        return self._answer(self.details.get(pid, CommandError("no such pid", 1)))

    @staticmethod
    def _answer(value):
        if isinstance(value, Exception):
            raise value
        return value


class FakeScanner:
    def __init__(self, records=None, error=None):
        self.records = list(records or [])
        self.error = error
        self.calls = 0

    def scan(self):
        self.calls += 1
        if self.error is not None:
            raise ScanError(self.error)
        return list(self.records)


class FakeTerminator:
    def __init__(self, failing=None):
        self.failing = dict(failing or {})
        self.killed = []

    def terminate(self, pid):
        from portwatch.process_manager import TerminationError

        if pid in self.failing:
            raise TerminationError(pid, self.failing[pid])
        self.killed.append(pid)

    def terminate_all(self, pids):
        outcomes = []
        for pid in pids:
            if pid in self.failing:
                outcomes.append(TerminationOutcome(pid, False, self.failing[pid]))
            else:
                self.killed.append(pid)
                outcomes.append(TerminationOutcome(pid, True))
        return outcomes


class RecordingBadge:
    def __init__(self):
        self.updates = []

    def update_badge(self, count, glyph):
        self.updates.append((count, glyph))


def build_record(
    pid=100,
    name="node",
    command=None,
    ports=(3000,),
    working_directory="/Users/dev/projects/web",
    framework=Framework.UNKNOWN,
    cpu=0.0,
    mem=0.0,
    memory_mb=10.0,
    start=None,
):
    if isinstance(start, datetime):
        start = StartTimestamp(start)
    elif isinstance(start, str):
        start = StartText(start)
    return ProcessRecord(
        pid=pid,
        name=name,
        command=command if command is not None else name,
        ports=tuple(ports),
        working_directory=working_directory,
        framework=framework,
        cpu_percent=cpu,
        memory_percent=mem,
        memory_mb=memory_mb,
        start=start,
    )


@pytest.fixture
def fake_tools():
    return FakeTools()


@pytest.fixture
def make_record():
    return build_record


@pytest.fixture
def settings():
    return AppSettings()


@pytest.fixture
def badge():
    return RecordingBadge()


@pytest.fixture
def fake_scanner():
    return FakeScanner()


@pytest.fixture
def fake_terminator():
    return FakeTerminator()

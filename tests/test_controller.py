"""Tests for the refresh scheduler and scan coalescing."""

import threading
import time

from portwatch.config import AppSettings
from portwatch.controller import RefreshScheduler
from portwatch.scanner import ScanError
from portwatch.view_model import ProcessViewModel


class BlockingScanner:
    """Scanner that holds each scan until released and tracks overlap."""

    def __init__(self, records=None):
        self.records = list(records or [])
        self.release = threading.Event()
        self.entered = threading.Event()
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def scan(self):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.entered.set()
        try:
            self.release.wait(timeout=5.0)
            return list(self.records)
        finally:
            with self._lock:
                self.active -= 1


class ExplodingScanner:
    def __init__(self):
        self.calls = 0

    def scan(self):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("unexpected")
        raise ScanError("lsof failed")


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_refresh_now_returns_false_while_in_flight(fake_terminator):
    """A second refresh during a scan is coalesced into the first."""
    scanner = BlockingScanner()
    vm = ProcessViewModel(AppSettings(), scanner=scanner, terminator=fake_terminator)
    worker = threading.Thread(target=vm.refresh_now)
    worker.start()
    assert scanner.entered.wait(timeout=2.0)
    assert vm.is_loading is True

    assert vm.refresh_now() is False

    scanner.release.set()
    worker.join(timeout=2.0)
    assert scanner.calls == 1
    assert vm.is_loading is False


def test_at_most_one_scan_in_flight(fake_terminator):
    """Scheduler ticks and manual refreshes never overlap."""
    scanner = BlockingScanner()
    vm = ProcessViewModel(AppSettings(), scanner=scanner, terminator=fake_terminator)
    scheduler = RefreshScheduler(vm, idle_poll_interval=0.01)

    scheduler.start()
    assert scanner.entered.wait(timeout=2.0)
    threads = [scheduler.refresh_async() for _ in range(5)]
    for thread in threads:
        thread.join(timeout=2.0)
    scanner.release.set()
    scheduler.stop(timeout=2.0)

    assert scanner.max_active == 1


def test_tick_disabled_does_not_scan(fake_scanner, fake_terminator):
    """With auto-refresh off the loop only polls the setting."""
    settings = AppSettings(auto_refresh_enabled=False)
    vm = ProcessViewModel(settings, scanner=fake_scanner, terminator=fake_terminator)
    scheduler = RefreshScheduler(vm, idle_poll_interval=0.25)

    assert scheduler.tick() == 0.25
    assert fake_scanner.calls == 0


def test_tick_scans_and_publishes(make_record, fake_scanner, fake_terminator, badge):
    """Each enabled tick scans once and updates the badge."""
    fake_scanner.records = [make_record(pid=1)]
    settings = AppSettings(refresh_interval_seconds=5.0)
    vm = ProcessViewModel(settings, scanner=fake_scanner, terminator=fake_terminator, badge_sink=badge)
    scheduler = RefreshScheduler(vm)

    assert scheduler.tick() == 5.0
    assert fake_scanner.calls == 1
    assert badge.updates[-1] == (1, settings.header_emoji)


def test_tick_clamps_short_interval(fake_scanner, fake_terminator):
    """Intervals below one second are raised to one second."""
    settings = AppSettings()
    settings.refresh_interval_seconds = 0.2
    vm = ProcessViewModel(settings, scanner=fake_scanner, terminator=fake_terminator)
    assert RefreshScheduler(vm).tick() == 1.0


def test_tick_after_stop_does_not_scan(fake_scanner, fake_terminator):
    """A stop request prevents any further scan."""
    vm = ProcessViewModel(AppSettings(), scanner=fake_scanner, terminator=fake_terminator)
    scheduler = RefreshScheduler(vm)
    scheduler.stop()
    assert scheduler.tick() == 0.0
    assert fake_scanner.calls == 0


def test_start_stop_lifecycle(fake_scanner, fake_terminator):
    """start is idempotent and stop ends the loop."""
    settings = AppSettings(auto_refresh_enabled=False)
    vm = ProcessViewModel(settings, scanner=fake_scanner, terminator=fake_terminator)
    scheduler = RefreshScheduler(vm, idle_poll_interval=0.01)

    scheduler.start()
    first = scheduler._thread
    scheduler.start()
    assert scheduler._thread is first
    assert scheduler.is_running

    scheduler.stop(timeout=2.0)
    assert not scheduler.is_running
    assert not first.is_alive()


def test_loop_survives_unexpected_errors(fake_terminator):
    """An exception in one tick is logged and the loop keeps going."""
    scanner = ExplodingScanner()
    settings = AppSettings()
    settings.refresh_interval_seconds = 0.0
    vm = ProcessViewModel(settings, scanner=scanner, terminator=fake_terminator)
    scheduler = RefreshScheduler(vm, idle_poll_interval=0.01)

    scheduler.start()
    try:
        assert _wait_for(lambda: scanner.calls >= 2)
    finally:
        scheduler.stop(timeout=2.0)
    assert vm.error_message == "lsof failed"


def test_refresh_async_publishes_badge(make_record, fake_scanner, fake_terminator, badge):
    """A manual refresh updates the badge once it completes."""
    fake_scanner.records = [make_record(pid=1), make_record(pid=2, ports=(4000,))]
    vm = ProcessViewModel(
        AppSettings(), scanner=fake_scanner, terminator=fake_terminator, badge_sink=badge
    )
    RefreshScheduler(vm).refresh_async().join(timeout=2.0)
    assert badge.updates == [(2, "⚓")]


class SwappingScanner:
    """Scanner that installs new settings while a scan is running."""

    def __init__(self, new_settings):
        self.new_settings = new_settings
        self.view_model = None

    def scan(self):
        self.view_model.replace_settings(self.new_settings)
        return []


def test_tick_uses_one_settings_snapshot(fake_terminator):
    """Settings replaced mid-scan apply from the next tick on."""
    replacement = AppSettings(auto_refresh_enabled=False, refresh_interval_seconds=30.0)
    scanner = SwappingScanner(replacement)
    vm = ProcessViewModel(
        AppSettings(refresh_interval_seconds=5.0), scanner=scanner, terminator=fake_terminator
    )
    scanner.view_model = vm
    scheduler = RefreshScheduler(vm, idle_poll_interval=0.5)

    assert scheduler.tick() == 5.0
    assert vm.settings is replacement
    assert scheduler.tick() == 0.5

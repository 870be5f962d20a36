"""Snapshot ownership and the projection used by the menu.

``ProcessViewModel`` is the only writer of the process snapshot. Scans and
kills run on worker threads, so every mutation goes through ``_lock`` and
replaces the snapshot tuple as a whole; readers always see one complete scan.
"""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from .config import AppSettings
from .models import ProcessRecord, ProjectGroup, ResourceStatus, SortOption, directory_display_name
from .process_manager import ProcessTerminator, TerminationError, TerminationOutcome
from .scanner import ProcessScanner, ScanError
from .utils import logger

APP_NAME = "PortWatch"


class BadgeSink(Protocol):
    def update_badge(self, count: int, glyph: str) -> None:
        ...


def is_own_process(process: ProcessRecord) -> bool:
    if process.name == APP_NAME:
        return True
    return APP_NAME.lower() in process.command.lower()


def filter_visible(processes: Iterable[ProcessRecord], settings: AppSettings) -> List[ProcessRecord]:
    visible: List[ProcessRecord] = []
    for process in processes:
        if not settings.show_portwatch_process and is_own_process(process):
            continue
        if not settings.show_system_root_directory and process.working_directory == "/":
            continue
        if settings.is_ignored(process):
            continue
        visible.append(process)
    return visible


def _start_key(process: ProcessRecord) -> Tuple[bool, datetime]:
    start = process.start_time
    return (start is None, start or datetime.min)


SORT_KEYS: Dict[SortOption, Callable[[ProcessRecord], object]] = {
    SortOption.PORT: lambda p: p.first_port,
    SortOption.NAME: lambda p: p.name.casefold(),
    SortOption.PROJECT: lambda p: p.working_directory,
    SortOption.USAGE: lambda p: -(p.cpu_percent + p.memory_percent),
    SortOption.TIME: _start_key,
}


def sort_processes(processes: Iterable[ProcessRecord], option: SortOption) -> List[ProcessRecord]:
    return sorted(processes, key=SORT_KEYS[option])


def group_by_directory(processes: Sequence[ProcessRecord]) -> List[ProjectGroup]:
    grouped: Dict[str, List[ProcessRecord]] = {}
    for process in processes:
        grouped.setdefault(process.working_directory, []).append(process)
    groups = [
        ProjectGroup(
            directory=directory,
            directory_name=directory_display_name(directory),
            processes=tuple(members),
        )
        for directory, members in grouped.items()
    ]
    return sorted(groups, key=lambda group: group.directory_name)


def resource_status(process: ProcessRecord, settings: AppSettings) -> ResourceStatus:
    if (
        process.cpu_percent >= settings.cpu_high_threshold
        or process.memory_percent >= settings.memory_high_threshold
    ):
        return ResourceStatus.HIGH
    if (
        process.cpu_percent >= settings.cpu_medium_threshold
        or process.memory_percent >= settings.memory_medium_threshold
    ):
        return ResourceStatus.MEDIUM
    return ResourceStatus.LOW


class ProcessViewModel:
    def __init__(
        self,
        settings: AppSettings,
        scanner: ProcessScanner,
        terminator: ProcessTerminator,
        badge_sink: Optional[BadgeSink] = None,
    ):
        self.settings = settings
        self._scanner = scanner
        self._terminator = terminator
        self.badge_sink = badge_sink
        self._processes: Tuple[ProcessRecord, ...] = ()
        self._is_loading = False
        self._error_message: Optional[str] = None
        self._revision = 0
        self._lock = threading.RLock()
        self._scan_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    @property
    def processes(self) -> Tuple[ProcessRecord, ...]:
        with self._lock:
            return self._processes

    @property
    def is_loading(self) -> bool:
        with self._lock:
            return self._is_loading

    @property
    def error_message(self) -> Optional[str]:
        with self._lock:
            return self._error_message

    @property
    def revision(self) -> int:
        """Bumped on every state change so the UI can skip redundant renders."""

        with self._lock:
            return self._revision

    @property
    def sort_option(self) -> SortOption:
        with self._lock:
            return self.settings.sort_option

    @property
    def visible_processes(self) -> List[ProcessRecord]:
        with self._lock:
            return filter_visible(self._processes, self.settings)

    @property
    def total_process_count(self) -> int:
        return len(self.visible_processes)

    @property
    def project_groups(self) -> List[ProjectGroup]:
        with self._lock:
            visible = filter_visible(self._processes, self.settings)
            option = self.settings.sort_option
        return group_by_directory(sort_processes(visible, option))

    def resource_status(self, process: ProcessRecord) -> ResourceStatus:
        with self._lock:
            return resource_status(process, self.settings)

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------
    def refresh_now(self) -> bool:
        """Run one scan and replace the snapshot.

        Returns False without scanning when another scan is already in
        flight; that scan's result is the one that becomes visible.
        """

        if not self._scan_lock.acquire(blocking=False):
            logger.debug("refresh skipped: scan already in flight")
            return False
        try:
            with self._lock:
                self._is_loading = True
                self._revision += 1
            try:
                records = self._scanner.scan()
            except ScanError as exc:
                logger.info("scan failed: %s", exc)
                with self._lock:
                    self._error_message = str(exc)
            else:
                with self._lock:
                    self._processes = tuple(records)
                    self._error_message = None
            finally:
                with self._lock:
                    self._is_loading = False
                    self._revision += 1
        finally:
            self._scan_lock.release()
        return True

    def kill_process(self, pid: int) -> bool:
        try:
            self._terminator.terminate(pid)
        except TerminationError as exc:
            with self._lock:
                self._error_message = f"Failed to kill process: {exc.reason}"
                self._revision += 1
            return False
        self._remove_pids({pid})
        self.publish_badge()
        return True

    def kill_all_processes(self) -> List[TerminationOutcome]:
        pids = [process.pid for process in self.visible_processes]
        outcomes = self._terminator.terminate_all(pids)
        self._remove_pids({outcome.pid for outcome in outcomes if outcome.success})
        failures = [outcome for outcome in outcomes if not outcome.success]
        if failures:
            with self._lock:
                self._error_message = f"Failed to kill {len(failures)} process(es)"
                self._revision += 1
        self.publish_badge()
        return outcomes

    def toggle_ignore(self, process: ProcessRecord) -> bool:
        with self._lock:
            hidden = self.settings.toggle_ignore(process)
            self._revision += 1
        self.publish_badge()
        return hidden

    def set_sort_option(self, option: SortOption) -> None:
        with self._lock:
            self.settings.sort_option = option
            self._revision += 1

    def replace_settings(self, settings: AppSettings) -> None:
        with self._lock:
            self.settings = settings
            self._revision += 1
        self.publish_badge()

    def clear_error(self) -> None:
        with self._lock:
            self._error_message = None
            self._revision += 1

    def publish_badge(self) -> None:
        if self.badge_sink is None:
            return
        with self._lock:
            count = len(filter_visible(self._processes, self.settings))
            glyph = self.settings.header_emoji
        self.badge_sink.update_badge(count, glyph)

    def _remove_pids(self, pids: set) -> None:
        if not pids:
            return
        with self._lock:
            self._processes = tuple(p for p in self._processes if p.pid not in pids)
            self._revision += 1


__all__ = [
    "APP_NAME",
    "BadgeSink",
    "ProcessViewModel",
    "SORT_KEYS",
    "filter_visible",
    "group_by_directory",
    "is_own_process",
    "resource_status",
    "sort_processes",
]

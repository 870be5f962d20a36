from __future__ import annotations

import subprocess
import threading
from typing import Dict, Optional

import rumps

try:
    import AppKit
    from Foundation import NSBundle
except ImportError:  # pragma: no cover - macOS only integration
    AppKit = None
    NSBundle = None

if __package__ in (None, ""):
    # Handle execution as a top-level script inside the py2app bundle.
    from portwatch.config import CONFIG_PATH, AppSettings, load_settings, save_settings
    from portwatch.controller import RefreshScheduler
    from portwatch.models import ProcessRecord, ProjectGroup, SortOption
    from portwatch.preferences import PreferencesController
    from portwatch.process_manager import ProcessTerminator
    from portwatch.scanner import ProcessScanner
    from portwatch.startup import sync_launch_agent
    from portwatch.utils import (
        badge_title,
        format_memory,
        format_ports,
        format_uptime,
        logger,
        pluralize,
    )
    from portwatch.view_model import APP_NAME, ProcessViewModel
else:
    from .config import CONFIG_PATH, AppSettings, load_settings, save_settings
    from .controller import RefreshScheduler
    from .models import ProcessRecord, ProjectGroup, SortOption
    from .preferences import PreferencesController
    from .process_manager import ProcessTerminator
    from .scanner import ProcessScanner
    from .startup import sync_launch_agent
    from .utils import (
        badge_title,
        format_memory,
        format_ports,
        format_uptime,
        logger,
        pluralize,
    )
    from .view_model import APP_NAME, ProcessViewModel

RENDER_INTERVAL = 0.5
MAX_COMMAND_CHARS = 80
NS_ON_STATE = 1
NS_OFF_STATE = 0


class MenuBarBadge:
    """Collects badge updates from worker threads for the main-thread timer."""

    def __init__(self, glyph: str):
        self._lock = threading.Lock()
        self._title: Optional[str] = glyph

    def update_badge(self, count: int, glyph: str) -> None:
        with self._lock:
            self._title = badge_title(count, glyph)

    def take_title(self) -> Optional[str]:
        with self._lock:
            title, self._title = self._title, None
        return title


class PortWatchApp(rumps.App):
    def __init__(self, settings: Optional[AppSettings] = None):
        self.settings = settings or load_settings()
        self.badge = MenuBarBadge(self.settings.header_emoji)
        self.view_model = ProcessViewModel(
            self.settings,
            scanner=ProcessScanner(),
            terminator=ProcessTerminator(),
            badge_sink=self.badge,
        )
        self.scheduler = RefreshScheduler(self.view_model)
        self.preferences_controller: Optional[PreferencesController] = None

        super().__init__(APP_NAME, title=self.settings.header_emoji, quit_button=None)

        self.refresh_item = rumps.MenuItem("Refresh Now", callback=self.refresh_now)
        self.kill_all_item = rumps.MenuItem("Kill All…", callback=self.kill_all)
        self.open_config_item = rumps.MenuItem("Preferences…", callback=self.open_preferences)
        self.quit_item = rumps.MenuItem("Quit", callback=self.quit)

        self.process_lookup: Dict[int, ProcessRecord] = {}
        self._rendered_revision = -1

        self._render_menu()
        self.render_timer = rumps.Timer(self._render_tick, RENDER_INTERVAL)
        self.render_timer.start()
        self._initial_timer = rumps.Timer(self._initial_refresh, 0.1)
        self._initial_timer.start()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def _initial_refresh(self, timer: rumps.Timer) -> None:
        timer.stop()
        self._ask_about_login_item()
        self.scheduler.refresh_async()
        self.scheduler.start()

    def _ask_about_login_item(self) -> None:
        if self.settings.has_asked_about_login_item:
            sync_launch_agent(self.settings.launch_at_login)
            return
        response = rumps.alert(
            title="Start at Login?",
            message=(
                "Would you like PortWatch to start automatically when you log in? "
                "You can change this later in Preferences."
            ),
            ok="Yes",
            cancel="No",
        )
        self.settings.launch_at_login = response == 1
        self.settings.has_asked_about_login_item = True
        sync_launch_agent(self.settings.launch_at_login)
        self._save_settings()

    def _save_settings(self) -> None:
        try:
            save_settings(self.settings)
        except OSError as exc:
            logger.info("could not save settings to %s: %s", CONFIG_PATH, exc)

    # ------------------------------------------------------------------
    # Menu rendering
    # ------------------------------------------------------------------
    def _render_tick(self, _) -> None:
        title = self.badge.take_title()
        if title is not None:
            self.title = title
        revision = self.view_model.revision
        if revision != self._rendered_revision:
            self._rendered_revision = revision
            self._render_menu()

    def _render_menu(self) -> None:
        groups = self.view_model.project_groups
        count = sum(len(group.processes) for group in groups)
        self.menu.clear()

        self.menu.add(
            rumps.MenuItem(
                f"{self.settings.header_emoji} {count} Active {pluralize(count, 'Server')}"
            )
        )
        error = self.view_model.error_message
        if error:
            self.menu.add(rumps.MenuItem(f"⚠️ {error}", callback=self._dismiss_error))
        self.menu.add(rumps.separator)

        self.process_lookup.clear()
        if not groups:
            if self.view_model.is_loading:
                self.menu.add(rumps.MenuItem("Scanning…"))
            else:
                self.menu.add(rumps.MenuItem("No Active Servers"))
        for group in groups:
            self._add_group(group)

        self.menu.add(rumps.separator)
        self.menu.add(self._sort_menu())
        self.menu.add(self.refresh_item)
        self.kill_all_item.set_callback(self.kill_all if count else None)
        self.menu.add(self.kill_all_item)
        self.menu.add(rumps.separator)
        self.menu.add(self.open_config_item)
        self.menu.add(self.quit_item)

    def _add_group(self, group: ProjectGroup) -> None:
        size = len(group.processes)
        noun = pluralize(size, "process", "processes")
        self.menu.add(rumps.MenuItem(f"{group.directory_name} — {size} {noun}"))
        for process in group.processes:
            self.process_lookup[process.pid] = process
            self.menu.add(self._process_item(process))

    def _process_item(self, process: ProcessRecord) -> rumps.MenuItem:
        status = self.view_model.resource_status(process)
        item = rumps.MenuItem(
            f"  {status.glyph} {process.display_name} {format_ports(process.ports)}"
            f" — CPU {process.cpu_percent:.1f}% · {format_memory(process.memory_mb)}"
            f" · {_uptime_text(process)}"
        )
        command = process.command
        if len(command) > MAX_COMMAND_CHARS:
            command = command[: MAX_COMMAND_CHARS - 1] + "…"
        item.add(rumps.MenuItem(f"PID {process.pid}"))
        item.add(rumps.MenuItem(process.working_directory))
        item.add(rumps.MenuItem(command))
        item.add(rumps.separator)
        kill_item = rumps.MenuItem("Kill", callback=self._on_kill_clicked)
        kill_item._pid = process.pid  # type: ignore[attr-defined]
        hide_item = rumps.MenuItem("Hide", callback=self._on_hide_clicked)
        hide_item._pid = process.pid  # type: ignore[attr-defined]
        item.add(kill_item)
        item.add(hide_item)
        return item

    def _sort_menu(self) -> rumps.MenuItem:
        current = self.view_model.sort_option
        sort_item = rumps.MenuItem(f"Sort: {current.value}")
        for option in SortOption:
            entry = rumps.MenuItem(option.value, callback=self._on_sort_clicked)
            entry.state = NS_ON_STATE if option == current else NS_OFF_STATE
            entry._sort_option = option  # type: ignore[attr-defined]
            sort_item.add(entry)
        return sort_item

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------
    def refresh_now(self, _) -> None:
        self.scheduler.refresh_async()

    def kill_all(self, _) -> None:
        count = self.view_model.total_process_count
        if not count:
            return
        response = rumps.alert(
            title="Kill All Processes?",
            message=(
                f"This will terminate {count} {pluralize(count, 'process', 'processes')}."
                " This action cannot be undone."
            ),
            ok="Kill All",
            cancel="Cancel",
        )
        if response != 1:
            return
        _run_in_background(self.view_model.kill_all_processes, "portwatch-kill-all")

    def _on_kill_clicked(self, sender: rumps.MenuItem) -> None:
        process = self.process_lookup.get(getattr(sender, "_pid", None))
        if process is None:
            return
        response = rumps.alert(
            title="Kill Process?",
            message=f"Terminate {process.display_name} (PID: {process.pid})?",
            ok="Kill",
            cancel="Cancel",
        )
        if response != 1:
            return
        _run_in_background(lambda: self.view_model.kill_process(process.pid), "portwatch-kill")

    def _on_hide_clicked(self, sender: rumps.MenuItem) -> None:
        process = self.process_lookup.get(getattr(sender, "_pid", None))
        if process is None:
            return
        self.view_model.toggle_ignore(process)
        self._save_settings()

    def _on_sort_clicked(self, sender: rumps.MenuItem) -> None:
        option = getattr(sender, "_sort_option", None)
        if option is None:
            return
        self.view_model.set_sort_option(option)
        self._save_settings()

    def _dismiss_error(self, _) -> None:
        self.view_model.clear_error()

    def open_preferences(self, _) -> None:
        if AppKit is None:
            self._save_settings()
            subprocess.run(["open", str(CONFIG_PATH.parent)], check=False)
            return
        if self.preferences_controller is None:
            try:
                self.preferences_controller = PreferencesController(
                    self.settings, self._apply_preferences
                )
            except RuntimeError:
                self._save_settings()
                subprocess.run(["open", str(CONFIG_PATH.parent)], check=False)
                return
        self.preferences_controller.show(self.view_model.settings)

    def _apply_preferences(self, settings: AppSettings) -> None:
        self.settings = settings
        self.view_model.replace_settings(settings)
        self._save_settings()
        sync_launch_agent(settings.launch_at_login)

    def quit(self, _) -> None:
        self.scheduler.stop(timeout=1.0)
        rumps.quit_application()


def _uptime_text(process: ProcessRecord) -> str:
    if process.start_time is not None:
        return format_uptime(process.start_time)
    return process.start_description or "Unknown"


def _run_in_background(target, name: str) -> None:
    threading.Thread(target=target, name=name, daemon=True).start()


def main() -> None:
    if AppKit is not None and NSBundle is not None:
        info = NSBundle.mainBundle().infoDictionary()
        if info is not None:
            info["LSUIElement"] = "1"
        ns_app = AppKit.NSApplication.sharedApplication()
        ns_app.setActivationPolicy_(AppKit.NSApplicationActivationPolicyAccessory)

    app = PortWatchApp()
    app.run()


__all__ = ["MenuBarBadge", "PortWatchApp", "main"]


if __name__ == "__main__":
    main()

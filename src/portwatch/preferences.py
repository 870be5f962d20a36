from __future__ import annotations

from dataclasses import replace
from typing import Callable, Dict, Optional, Sequence, Tuple

try:
    import AppKit
except ImportError:  # pragma: no cover - macOS only UI
    AppKit = None  # type: ignore

from .config import AVAILABLE_EMOJIS, AppSettings

MIN_REFRESH_SECONDS = 2.0
MAX_REFRESH_SECONDS = 60.0

NS_ON_STATE = 1
NS_OFF_STATE = 0
if AppKit is not None:  # pragma: no branch - macOS only constants
    NS_ON_STATE = getattr(AppKit, "NSControlStateValueOn", getattr(AppKit, "NSOnState", 1))
    NS_OFF_STATE = getattr(AppKit, "NSControlStateValueOff", getattr(AppKit, "NSOffState", 0))


def _make_rect(frame) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    """Normalize Cocoa frame inputs to ((x, y), (width, height))."""

    if hasattr(frame, "origin") and hasattr(frame, "size"):
        origin = frame.origin
        size = frame.size
        return (
            (float(getattr(origin, "x", 0.0)), float(getattr(origin, "y", 0.0))),
            (float(getattr(size, "width", 0.0)), float(getattr(size, "height", 0.0))),
        )

    if isinstance(frame, Sequence):
        if len(frame) == 2 and all(isinstance(part, Sequence) for part in frame):
            (x, y), (w, h) = frame  # type: ignore[misc]
            return ((float(x), float(y)), (float(w), float(h)))
        if len(frame) == 4:
            x, y, w, h = frame  # type: ignore[misc]
            return ((float(x), float(y)), (float(w), float(h)))

    raise ValueError(f"Unsupported frame format: {frame!r}")


def field_values(settings: AppSettings) -> Dict[str, str]:
    """Text shown in each preferences field for ``settings``."""

    return {
        "refresh_interval": f"{settings.refresh_interval_seconds:g}",
        "cpu_medium": f"{settings.cpu_medium_threshold:g}",
        "cpu_high": f"{settings.cpu_high_threshold:g}",
        "memory_medium": f"{settings.memory_medium_threshold:g}",
        "memory_high": f"{settings.memory_high_threshold:g}",
        "emoji": settings.header_emoji,
        "ignored": "\n".join(sorted(settings.ignored_process_keys)),
    }


def coerce_number(raw: str, default: float, minimum: float, maximum: float) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    return min(maximum, max(minimum, value))


def parse_ignored_keys(raw: str) -> set:
    return {line.strip() for line in (raw or "").splitlines() if line.strip()}


def coerce_emoji(raw: str, default: str) -> str:
    candidate = (raw or "").strip()
    if candidate in AVAILABLE_EMOJIS:
        return candidate
    return default


class PreferencesController:  # pragma: no cover - UI heavy
    def __init__(self, settings: AppSettings, on_apply: Callable[[AppSettings], None]):
        if AppKit is None:
            raise RuntimeError("Preferences UI requires macOS AppKit")
        self.settings = settings
        self.on_apply = on_apply

        self.window: Optional[AppKit.NSWindow] = None
        self.launch_login_checkbox = None
        self.auto_refresh_checkbox = None
        self.show_root_checkbox = None
        self.show_self_checkbox = None
        self.refresh_interval_field = None
        self.cpu_medium_field = None
        self.cpu_high_field = None
        self.memory_medium_field = None
        self.memory_high_field = None
        self.emoji_field = None
        self.ignored_view = None

        self._build_window()

    # ------------------------------------------------------------------
    # UI construction
    # ------------------------------------------------------------------
    def _build_window(self) -> None:
        frame = ((0.0, 0.0), (420.0, 560.0))
        style = (
            getattr(AppKit, "NSWindowStyleMaskTitled", AppKit.NSTitledWindowMask)
            | getattr(AppKit, "NSWindowStyleMaskClosable", AppKit.NSClosableWindowMask)
        )
        window = AppKit.NSWindow.alloc().initWithContentRect_styleMask_backing_defer_(
            frame,
            style,
            AppKit.NSBackingStoreBuffered,
            False,
        )
        window.setTitle_("PortWatch Preferences")
        window.center()

        content_width = int(frame[1][0])
        content_height = int(frame[1][1])
        content = AppKit.NSView.alloc().initWithFrame_(((0, 0), (content_width, content_height)))
        window.setContentView_(content)

        padding = 20
        label_width = 230
        field_width = content_width - (2 * padding) - label_width - 10
        y = content_height - padding - 24

        def add_checkbox(title: str, value: bool):
            nonlocal y
            checkbox = self._add_checkbox(content, title, (padding, y, 260, 24), value)
            y -= 28
            return checkbox

        self.launch_login_checkbox = add_checkbox("Launch at login", self.settings.launch_at_login)
        self.auto_refresh_checkbox = add_checkbox("Auto-refresh", self.settings.auto_refresh_enabled)
        self.show_root_checkbox = add_checkbox(
            "Show system / directory", self.settings.show_system_root_directory
        )
        self.show_self_checkbox = add_checkbox(
            "Show PortWatch process", self.settings.show_portwatch_process
        )
        y -= 8

        def add_field(title: str, value: str):
            nonlocal y
            self._add_label(content, title, (padding, y, label_width, 22))
            field = self._add_text_field(
                content,
                (padding + label_width + 10, y, field_width, 24),
                value,
            )
            y -= 32
            return field

        values = field_values(self.settings)
        self.refresh_interval_field = add_field(
            "Refresh interval (seconds):", values["refresh_interval"]
        )
        self.cpu_medium_field = add_field("CPU medium threshold (%):", values["cpu_medium"])
        self.cpu_high_field = add_field("CPU high threshold (%):", values["cpu_high"])
        self.memory_medium_field = add_field(
            "Memory medium threshold (%):", values["memory_medium"]
        )
        self.memory_high_field = add_field("Memory high threshold (%):", values["memory_high"])
        self.emoji_field = add_field(
            f"Header emoji ({' '.join(AVAILABLE_EMOJIS)}):", values["emoji"]
        )

        self._add_label(
            content,
            "Hidden processes (one per line):",
            (padding, y, content_width - 2 * padding, 22),
        )
        y -= 26

        list_height = 110
        scroll_frame = (padding, y - list_height, content_width - 2 * padding, list_height)
        scroll_view = AppKit.NSScrollView.alloc().initWithFrame_(_make_rect(scroll_frame))
        scroll_view.setBorderType_(AppKit.NSBezelBorder)
        scroll_view.setHasVerticalScroller_(True)
        scroll_view.setAutohidesScrollers_(True)

        text_view_frame = _make_rect((0, 0, scroll_frame[2], scroll_frame[3]))
        self.ignored_view = AppKit.NSTextView.alloc().initWithFrame_(text_view_frame)
        self.ignored_view.setRichText_(False)
        self.ignored_view.setFont_(AppKit.NSFont.systemFontOfSize_(12))
        self.ignored_view.setString_(values["ignored"])
        self.ignored_view.setAutoresizingMask_(AppKit.NSViewWidthSizable | AppKit.NSViewHeightSizable)

        scroll_view.setDocumentView_(self.ignored_view)
        content.addSubview_(scroll_view)

        self._add_button(content, "Save", (padding, 20, 140, 32), "saveClicked:")
        self._add_button(content, "Cancel", (padding + 160, 20, 140, 32), "cancelClicked:")

        self.window = window

    def _add_checkbox(self, parent, title: str, frame, value: bool):
        checkbox = AppKit.NSButton.alloc().initWithFrame_(_make_rect(frame))
        checkbox.setButtonType_(AppKit.NSSwitchButton)
        checkbox.setTitle_(title)
        checkbox.setState_(NS_ON_STATE if value else NS_OFF_STATE)
        parent.addSubview_(checkbox)
        return checkbox

    def _add_label(self, parent, title: str, frame):
        label = AppKit.NSTextField.alloc().initWithFrame_(_make_rect(frame))
        label.setStringValue_(title)
        label.setBordered_(False)
        label.setEditable_(False)
        label.setDrawsBackground_(False)
        parent.addSubview_(label)
        return label

    def _add_text_field(self, parent, frame, value: str):
        field = AppKit.NSTextField.alloc().initWithFrame_(_make_rect(frame))
        field.setStringValue_(value)
        parent.addSubview_(field)
        return field

    def _add_button(self, parent, title: str, frame, action: str):
        button = AppKit.NSButton.alloc().initWithFrame_(_make_rect(frame))
        button.setTitle_(title)
        button.setBezelStyle_(
            getattr(AppKit, "NSBezelStyleRounded", AppKit.NSRoundedBezelStyle)
        )
        button.setTarget_(self)
        button.setAction_(action)
        parent.addSubview_(button)
        return button

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def show(self, settings: Optional[AppSettings] = None) -> None:
        if self.window is None:
            return
        if settings is not None:
            self.settings = settings
        self._load_fields()
        self.window.makeKeyAndOrderFront_(None)
        AppKit.NSApp.activateIgnoringOtherApps_(True)

    def _load_fields(self) -> None:
        """Refresh every control from the current settings."""

        settings = self.settings
        values = field_values(settings)
        for checkbox, value in (
            (self.launch_login_checkbox, settings.launch_at_login),
            (self.auto_refresh_checkbox, settings.auto_refresh_enabled),
            (self.show_root_checkbox, settings.show_system_root_directory),
            (self.show_self_checkbox, settings.show_portwatch_process),
        ):
            checkbox.setState_(NS_ON_STATE if value else NS_OFF_STATE)
        self.refresh_interval_field.setStringValue_(values["refresh_interval"])
        self.cpu_medium_field.setStringValue_(values["cpu_medium"])
        self.cpu_high_field.setStringValue_(values["cpu_high"])
        self.memory_medium_field.setStringValue_(values["memory_medium"])
        self.memory_high_field.setStringValue_(values["memory_high"])
        self.emoji_field.setStringValue_(values["emoji"])
        self.ignored_view.setString_(values["ignored"])

    def saveClicked_(self, sender) -> None:  # noqa: N802 - Cocoa selector
        if self.window is None:
            return
        current = self.settings

        def checked(checkbox) -> bool:
            return checkbox.state() == NS_ON_STATE

        def percent(field, default: float) -> float:
            return coerce_number(field.stringValue(), default, 0.0, 100.0)

        updated = replace(
            current,
            launch_at_login=checked(self.launch_login_checkbox),
            auto_refresh_enabled=checked(self.auto_refresh_checkbox),
            show_system_root_directory=checked(self.show_root_checkbox),
            show_portwatch_process=checked(self.show_self_checkbox),
            refresh_interval_seconds=coerce_number(
                self.refresh_interval_field.stringValue(),
                current.refresh_interval_seconds,
                MIN_REFRESH_SECONDS,
                MAX_REFRESH_SECONDS,
            ),
            cpu_medium_threshold=percent(self.cpu_medium_field, current.cpu_medium_threshold),
            cpu_high_threshold=percent(self.cpu_high_field, current.cpu_high_threshold),
            memory_medium_threshold=percent(
                self.memory_medium_field, current.memory_medium_threshold
            ),
            memory_high_threshold=percent(self.memory_high_field, current.memory_high_threshold),
            header_emoji=coerce_emoji(self.emoji_field.stringValue(), current.header_emoji),
            ignored_process_keys=parse_ignored_keys(self.ignored_view.string() or ""),
        )

        self.settings = updated
        self.on_apply(updated)
        self.window.orderOut_(None)

    def cancelClicked_(self, sender) -> None:  # noqa: N802 - Cocoa selector
        if self.window is not None:
            self.window.orderOut_(None)


__all__ = [
    "PreferencesController",
    "coerce_emoji",
    "coerce_number",
    "field_values",
    "parse_ignored_keys",
]

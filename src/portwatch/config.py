from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Set

from .models import Framework, ProcessRecord, SortOption

CONFIG_PATH = Path(
    os.getenv(
        "PORTWATCH_CONFIG",
        Path.home() / ".config" / "portwatch" / "config.json",
    )
)

AVAILABLE_EMOJIS = ["⚓", "🚢", "⛵", "🔥", "🚀", "⚡", "🎯", "📡", "🔌", "🌐"]

MIN_REFRESH_INTERVAL = 1.0

DEFAULT_CONFIG = {
    "show_system_root_directory": False,
    "show_portwatch_process": False,
    "cpu_medium_threshold": 10.0,
    "cpu_high_threshold": 50.0,
    "memory_medium_threshold": 15.0,
    "memory_high_threshold": 25.0,
    "auto_refresh_enabled": True,
    "refresh_interval_seconds": 5.0,
    "header_emoji": AVAILABLE_EMOJIS[0],
    "has_asked_about_login_item": False,
    "launch_at_login": False,
    "ignored_process_keys": [],
    "sort_option": SortOption.PORT.value,
}


@dataclass
class AppSettings:
    show_system_root_directory: bool = DEFAULT_CONFIG["show_system_root_directory"]
    show_portwatch_process: bool = DEFAULT_CONFIG["show_portwatch_process"]
    cpu_medium_threshold: float = DEFAULT_CONFIG["cpu_medium_threshold"]
    cpu_high_threshold: float = DEFAULT_CONFIG["cpu_high_threshold"]
    memory_medium_threshold: float = DEFAULT_CONFIG["memory_medium_threshold"]
    memory_high_threshold: float = DEFAULT_CONFIG["memory_high_threshold"]
    auto_refresh_enabled: bool = DEFAULT_CONFIG["auto_refresh_enabled"]
    refresh_interval_seconds: float = DEFAULT_CONFIG["refresh_interval_seconds"]
    header_emoji: str = DEFAULT_CONFIG["header_emoji"]
    has_asked_about_login_item: bool = DEFAULT_CONFIG["has_asked_about_login_item"]
    launch_at_login: bool = DEFAULT_CONFIG["launch_at_login"]
    ignored_process_keys: Set[str] = field(default_factory=set)
    sort_option: SortOption = SortOption.PORT

    @property
    def effective_refresh_interval(self) -> float:
        return max(MIN_REFRESH_INTERVAL, self.refresh_interval_seconds)

    def ignore_key(self, process: ProcessRecord) -> str:
        port = f":{process.first_port}" if process.ports else ""
        if process.framework != Framework.UNKNOWN:
            return f"{process.name} ({process.framework.value}){port}"
        return f"{process.name}{port}"

    def is_ignored(self, process: ProcessRecord) -> bool:
        return self.ignore_key(process) in self.ignored_process_keys

    def toggle_ignore(self, process: ProcessRecord) -> bool:
        """Flip the hidden state of ``process``; returns True when now hidden."""

        key = self.ignore_key(process)
        if key in self.ignored_process_keys:
            self.ignored_process_keys.discard(key)
            return False
        self.ignored_process_keys.add(key)
        return True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        def flag(key: str) -> bool:
            return bool(data.get(key, DEFAULT_CONFIG[key]))

        def number(key: str) -> float:
            try:
                return float(data.get(key, DEFAULT_CONFIG[key]))
            except (TypeError, ValueError):
                return float(DEFAULT_CONFIG[key])

        raw_keys = data.get("ignored_process_keys") or []
        ignored = {key for key in raw_keys if isinstance(key, str) and key}

        emoji = data.get("header_emoji") or DEFAULT_CONFIG["header_emoji"]
        if not isinstance(emoji, str):
            emoji = DEFAULT_CONFIG["header_emoji"]

        try:
            sort_option = SortOption(data.get("sort_option", DEFAULT_CONFIG["sort_option"]))
        except ValueError:
            sort_option = SortOption.PORT

        return cls(
            show_system_root_directory=flag("show_system_root_directory"),
            show_portwatch_process=flag("show_portwatch_process"),
            cpu_medium_threshold=number("cpu_medium_threshold"),
            cpu_high_threshold=number("cpu_high_threshold"),
            memory_medium_threshold=number("memory_medium_threshold"),
            memory_high_threshold=number("memory_high_threshold"),
            auto_refresh_enabled=flag("auto_refresh_enabled"),
            refresh_interval_seconds=max(
                MIN_REFRESH_INTERVAL, number("refresh_interval_seconds")
            ),
            header_emoji=emoji,
            has_asked_about_login_item=flag("has_asked_about_login_item"),
            launch_at_login=flag("launch_at_login"),
            ignored_process_keys=ignored,
            sort_option=sort_option,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "show_system_root_directory": self.show_system_root_directory,
            "show_portwatch_process": self.show_portwatch_process,
            "cpu_medium_threshold": self.cpu_medium_threshold,
            "cpu_high_threshold": self.cpu_high_threshold,
            "memory_medium_threshold": self.memory_medium_threshold,
            "memory_high_threshold": self.memory_high_threshold,
            "auto_refresh_enabled": self.auto_refresh_enabled,
            "refresh_interval_seconds": self.refresh_interval_seconds,
            "header_emoji": self.header_emoji,
            "has_asked_about_login_item": self.has_asked_about_login_item,
            "launch_at_login": self.launch_at_login,
            "ignored_process_keys": sorted(self.ignored_process_keys),
            "sort_option": self.sort_option.value,
        }


def ensure_config_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def load_settings(path: Path = CONFIG_PATH) -> AppSettings:
    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, OSError):
            data = {}
    else:
        data = {}
    if not isinstance(data, dict):
        data = {}
    return AppSettings.from_dict(data)


def save_settings(settings: AppSettings, path: Path = CONFIG_PATH) -> None:
    payload = settings.to_dict()
    ensure_config_dir(path)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True, ensure_ascii=False)


__all__ = [
    "AVAILABLE_EMOJIS",
    "AppSettings",
    "CONFIG_PATH",
    "MIN_REFRESH_INTERVAL",
    "load_settings",
    "save_settings",
]

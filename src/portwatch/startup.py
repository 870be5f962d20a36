from __future__ import annotations

import os
import plistlib
import subprocess
import sys
from pathlib import Path
from typing import List

from .utils import logger

AGENT_IDENTIFIER = "com.portwatch.app"
AGENT_FILENAME = f"{AGENT_IDENTIFIER}.plist"
LAUNCH_AGENTS_DIR = Path.home() / "Library" / "LaunchAgents"
PLIST_PATH = LAUNCH_AGENTS_DIR / AGENT_FILENAME


def program_arguments() -> List[str]:
    return [sys.executable, "-m", "portwatch.app"]


def build_plist() -> dict:
    return {
        "Label": AGENT_IDENTIFIER,
        "ProgramArguments": program_arguments(),
        "RunAtLoad": True,
        "KeepAlive": False,
        "EnvironmentVariables": {
            "PATH": os.environ.get("PATH", ""),
        },
    }


def enable_launch_agent(plist_path: Path = PLIST_PATH) -> bool:
    try:
        plist_path.parent.mkdir(parents=True, exist_ok=True)
        with plist_path.open("wb") as handle:
            plistlib.dump(build_plist(), handle)
    except OSError as exc:
        logger.info("could not write launch agent %s: %s", plist_path, exc)
        return False

    _launchctl("bootout", plist_path)
    _launchctl("bootstrap", plist_path)
    return True


def disable_launch_agent(plist_path: Path = PLIST_PATH) -> bool:
    removed = False
    if plist_path.exists():
        try:
            plist_path.unlink()
            removed = True
        except OSError as exc:
            logger.info("could not remove launch agent %s: %s", plist_path, exc)
    _launchctl("bootout", plist_path)
    return removed


def is_launch_agent_enabled(plist_path: Path = PLIST_PATH) -> bool:
    return plist_path.exists()


def sync_launch_agent(enabled: bool, plist_path: Path = PLIST_PATH) -> None:
    current = is_launch_agent_enabled(plist_path)
    if enabled and not current:
        enable_launch_agent(plist_path)
    elif not enabled and current:
        disable_launch_agent(plist_path)


def _launchctl(action: str, plist_path: Path) -> None:
    if action == "bootstrap" and not plist_path.exists():
        return
    uid = os.getuid()
    try:
        subprocess.run(
            ["launchctl", action, f"gui/{uid}", str(plist_path)],
            check=False,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except FileNotFoundError:
        return


__all__ = [
    "build_plist",
    "disable_launch_agent",
    "enable_launch_agent",
    "is_launch_agent_enabled",
    "sync_launch_agent",
]

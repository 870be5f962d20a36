from __future__ import annotations

import sys
from pathlib import Path

from setuptools import setup

APP = ["src/portwatch/app.py"]
RESOURCES_DIR = Path("src/portwatch/assets")

VERSION = "0.1.0"
if (Path(__file__).parent / "pyproject.toml").exists():
    try:
        import tomllib  # type: ignore[attr-defined]
    except ModuleNotFoundError:  # pragma: no cover - fallback for Python <3.11
        tomllib = None  # type: ignore
    if tomllib is not None:
        try:
            with (Path(__file__).parent / "pyproject.toml").open("rb") as handle:
                data = tomllib.load(handle)
            VERSION = data.get("project", {}).get("version", VERSION)
        except (OSError, ValueError):  # pragma: no cover - best effort
            pass

OPTIONS = {
    "argv_emulation": False,
    "packages": ["portwatch", "psutil", "rumps"],
    "plist": {
        "LSUIElement": True,
        "CFBundleName": "PortWatch",
        "CFBundleIdentifier": "com.portwatch.app",
        "CFBundleShortVersionString": VERSION,
        "CFBundleVersion": VERSION,
    },
    "resources": [str(RESOURCES_DIR)] if RESOURCES_DIR.exists() else [],
}

if "py2app" in sys.argv:
    # python setup.py py2app builds the .app bundle; everything else is
    # plain pyproject metadata.
    setup(
        app=APP,
        options={"py2app": OPTIONS},
        setup_requires=["py2app>=0.28"],
    )
else:
    setup()

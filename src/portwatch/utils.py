from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Optional, Sequence

DEBUG_MODE = os.getenv("PORTWATCH_DEBUG")
logger = logging.getLogger("portwatch")
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("[portwatch] %(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
logger.setLevel(logging.DEBUG if DEBUG_MODE else logging.INFO)


def format_uptime(start: Optional[datetime], now: Optional[datetime] = None) -> str:
    if start is None:
        return "Unknown"
    now = now or datetime.now()
    interval = max(0.0, (now - start).total_seconds())
    if interval < 60:
        return "<1m"
    if interval < 3600:
        return f"{round(interval / 60)}m"
    if interval < 86400:
        return f"{max(1, round(interval / 3600))}h"
    days = int(interval // 86400)
    hours = round((interval - days * 86400) / 3600)
    if hours == 24:
        hours = 0
    if hours == 0:
        return f"{days}d"
    return f"{days}d {hours}h"


def format_ports(ports: Sequence[int]) -> str:
    return ":" + ", ".join(str(port) for port in ports)


def format_memory(memory_mb: float) -> str:
    if memory_mb >= 1024:
        return f"{memory_mb / 1024:.1f}GB"
    return f"{memory_mb:.0f}MB"


def pluralize(count: int, singular: str, plural: Optional[str] = None) -> str:
    if count == 1:
        return singular
    return plural or f"{singular}s"


def badge_title(count: int, glyph: str) -> str:
    if count > 0:
        return f"{glyph} {count}"
    return glyph


__all__ = [
    "DEBUG_MODE",
    "badge_title",
    "format_memory",
    "format_ports",
    "format_uptime",
    "logger",
    "pluralize",
]

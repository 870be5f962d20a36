from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional, Tuple, Union

UNKNOWN_DIRECTORY = "Unknown"


class Framework(str, Enum):
    VITE = "Vite"
    ASTRO = "Astro"
    NEXTJS = "Next.js"
    WEBPACK = "Webpack"
    FASTAPI = "FastAPI"
    FLASK = "Flask"
    DJANGO = "Django"
    SPRING = "Spring"
    RAILS = "Rails"
    LLAMA_CPP = "llama.cpp"
    DOCKER = "Docker"
    POSTGRES = "Postgres"
    REDIS = "Redis"
    MONGODB = "MongoDB"
    UNKNOWN = "Unknown"


class SortOption(str, Enum):
    PORT = "Port"
    NAME = "Name"
    PROJECT = "Project"
    USAGE = "Usage"
    TIME = "Time"


class ResourceStatus(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def glyph(self) -> str:
        return {
            ResourceStatus.HIGH: "🔴",
            ResourceStatus.MEDIUM: "🟡",
            ResourceStatus.LOW: "🟢",
        }[self]


@dataclass(frozen=True)
class StartTimestamp:
    value: datetime


@dataclass(frozen=True)
class StartText:
    """Raw ``ps`` start column that did not parse into a timestamp."""

    text: str


ProcessStart = Union[StartTimestamp, StartText]


@dataclass(frozen=True)
class ProcessRecord:
    pid: int
    name: str
    command: str
    ports: Tuple[int, ...]
    working_directory: str = UNKNOWN_DIRECTORY
    framework: Framework = Framework.UNKNOWN
    cpu_percent: float = 0.0
    memory_percent: float = 0.0
    memory_mb: float = 0.0
    start: Optional[ProcessStart] = None

    def __post_init__(self) -> None:
        ports = tuple(sorted(set(self.ports)))
        if not ports:
            raise ValueError(f"pid {self.pid} has no listening ports")
        object.__setattr__(self, "ports", ports)

    @property
    def start_time(self) -> Optional[datetime]:
        if isinstance(self.start, StartTimestamp):
            return self.start.value
        return None

    @property
    def start_description(self) -> Optional[str]:
        if isinstance(self.start, StartText):
            return self.start.text
        return None

    @property
    def first_port(self) -> int:
        return self.ports[0]

    @property
    def display_name(self) -> str:
        if self.framework != Framework.UNKNOWN:
            return f"{self.name} ({self.framework.value})"
        return self.name

    @property
    def directory_name(self) -> str:
        return directory_display_name(self.working_directory)


@dataclass(frozen=True)
class ProjectGroup:
    directory: str
    directory_name: str
    processes: Tuple[ProcessRecord, ...] = field(default_factory=tuple)


def directory_display_name(directory: str) -> str:
    return PurePosixPath(directory).name or directory


__all__ = [
    "Framework",
    "ProcessRecord",
    "ProcessStart",
    "ProjectGroup",
    "ResourceStatus",
    "SortOption",
    "StartText",
    "StartTimestamp",
    "UNKNOWN_DIRECTORY",
    "directory_display_name",
]

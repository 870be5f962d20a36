"""Infer the development framework behind a listening process.

Rules are evaluated in order against the lower-cased command line and the
first match wins, so broad tokens must come after the specific ones they
would otherwise shadow.
"""
from __future__ import annotations

from typing import Callable, List, Tuple

from .models import Framework

Predicate = Callable[[str], bool]


def contains(*tokens: str) -> Predicate:
    """Match when every token is present."""

    def predicate(command: str) -> bool:
        return all(token in command for token in tokens)

    return predicate


def contains_any(*tokens: str) -> Predicate:
    def predicate(command: str) -> bool:
        return any(token in command for token in tokens)

    return predicate


def contains_without(token: str, absent: str) -> Predicate:
    def predicate(command: str) -> bool:
        return token in command and absent not in command

    return predicate


FRAMEWORK_RULES: List[Tuple[Predicate, Framework]] = [
    # JavaScript / TypeScript
    (contains("vite"), Framework.VITE),
    (contains("astro"), Framework.ASTRO),
    (contains("next"), Framework.NEXTJS),
    (contains("webpack"), Framework.WEBPACK),
    # Python
    (contains("fastapi"), Framework.FASTAPI),
    (contains("uvicorn", "fastapi"), Framework.FASTAPI),
    (contains("flask"), Framework.FLASK),
    (contains("django"), Framework.DJANGO),
    # a bare ASGI server is most often serving FastAPI
    (contains_without("uvicorn", "fastapi"), Framework.FASTAPI),
    (contains("gunicorn"), Framework.FLASK),
    # JVM / Ruby
    (contains("spring"), Framework.SPRING),
    (contains("rails"), Framework.RAILS),
    # AI / ML
    (contains_any("llama-server", "llama.cpp"), Framework.LLAMA_CPP),
    # Infrastructure
    (contains_any("docker-proxy", "dockerd"), Framework.DOCKER),
    (contains("postgres"), Framework.POSTGRES),
    (contains("redis-server"), Framework.REDIS),
    (contains("mongod"), Framework.MONGODB),
]


def detect_framework(command: str) -> Framework:
    lowered = (command or "").lower()
    for predicate, framework in FRAMEWORK_RULES:
        if predicate(lowered):
            return framework
    return Framework.UNKNOWN


__all__ = [
    "FRAMEWORK_RULES",
    "contains",
    "contains_any",
    "contains_without",
    "detect_framework",
]

"""Tests for framework detection."""

import pytest

from portwatch.frameworks import FRAMEWORK_RULES, contains_without, detect_framework
from portwatch.models import Framework


@pytest.mark.parametrize(
    "command, expected",
    [
        ("node /Users/dev/web/node_modules/.bin/vite --port 5173", Framework.VITE),
        ("node node_modules/astro/astro.js dev", Framework.ASTRO),
        ("node /app/node_modules/.bin/next dev", Framework.NEXTJS),
        ("node node_modules/webpack-dev-server/bin/webpack-dev-server.js", Framework.WEBPACK),
        ("python -m fastapi dev main.py", Framework.FASTAPI),
        ("uvicorn --app fastapi.main:app", Framework.FASTAPI),
        ("uvicorn app:app", Framework.FASTAPI),
        ("python -m flask run", Framework.FLASK),
        ("python manage.py runserver django", Framework.DJANGO),
        ("gunicorn -w 4 wsgi:app", Framework.FLASK),
        ("java -jar spring-boot-app.jar", Framework.SPRING),
        ("ruby bin/rails server", Framework.RAILS),
        ("llama-server -m model.gguf --port 8080", Framework.LLAMA_CPP),
        ("/usr/local/bin/llama.cpp/server", Framework.LLAMA_CPP),
        ("/usr/bin/docker-proxy -proto tcp", Framework.DOCKER),
        ("/usr/bin/dockerd -H fd://", Framework.DOCKER),
        ("/opt/homebrew/opt/postgresql@16/bin/postgres -D /data", Framework.POSTGRES),
        ("redis-server *:6379", Framework.REDIS),
        ("mongod --dbpath /data/db", Framework.MONGODB),
        ("ControlCenter", Framework.UNKNOWN),
        ("", Framework.UNKNOWN),
    ],
)
def test_detect_framework_table(command, expected):
    """Each known command line maps to its framework."""
    assert detect_framework(command) == expected


def test_detection_is_case_insensitive():
    """Upper-case commands are matched the same way."""
    assert detect_framework("NODE VITE") == Framework.VITE
    assert detect_framework("Redis-Server 127.0.0.1:6379") == Framework.REDIS


def test_first_match_wins():
    """A command naming two frameworks resolves to the earlier rule."""
    assert detect_framework("vite build --config next.config.js") == Framework.VITE
    assert detect_framework("flask run --with-django-bridge") == Framework.FLASK


def test_bare_uvicorn_rule_is_independent():
    """The ASGI fallback predicate only fires without a fastapi token."""
    predicate = contains_without("uvicorn", "fastapi")
    assert predicate("uvicorn app:app")
    assert not predicate("uvicorn fastapi.main:app")
    assert not predicate("hypercorn app:app")


def test_rules_only_use_known_frameworks():
    """Every rule maps to a concrete framework tag."""
    tags = {framework for _, framework in FRAMEWORK_RULES}
    assert Framework.UNKNOWN not in tags
    assert tags <= set(Framework)


def test_detection_is_deterministic():
    """Repeated calls give the same answer."""
    results = {detect_framework("uvicorn app:app") for _ in range(10)}
    assert results == {Framework.FASTAPI}

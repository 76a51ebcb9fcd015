import asyncio
import inspect
import os

import pytest

os.environ.setdefault("TESTING", "1")

from fastapi.testclient import TestClient

from monsterden import config
from monsterden.app import create_app
from monsterden.auth import get_current_user
from monsterden.engine import Engine, set_engine


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """Lightweight async test support when ``pytest-asyncio`` isn't available."""

    test_function = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_function):
        return None

    call_kwargs = {
        name: value
        for name, value in pyfuncitem.funcargs.items()
        if name in pyfuncitem._fixtureinfo.argnames
    }

    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        loop.run_until_complete(test_function(**call_kwargs))
        loop.run_until_complete(loop.shutdown_asyncgens())
    finally:
        asyncio.set_event_loop(None)
        loop.close()

    return True


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep every test on in-memory stores with instant retries."""
    monkeypatch.setattr(config, "storage_backend", "memory")
    monkeypatch.setattr(config, "wallet_uri", None)
    monkeypatch.setattr(config, "quests_uri", None)
    monkeypatch.setattr(config, "monsters_uri", None)
    monkeypatch.setattr(config, "events_async", False)
    monkeypatch.setattr(config, "retry_backoff_seconds", 0.0)
    monkeypatch.setattr(config, "disable_auth", False)


@pytest.fixture
def engine():
    """A fresh engine with empty in-memory stores."""
    eng = Engine()
    set_engine(eng)
    yield eng
    set_engine(None)


@pytest.fixture
def make_client(engine):
    """Return a factory building a ``TestClient`` acting as ``user``."""

    def _make(user: str | None = "alice") -> TestClient:
        app = create_app(engine)
        if user is not None:
            app.dependency_overrides[get_current_user] = lambda: user
        return TestClient(app, raise_server_exceptions=False)

    return _make


@pytest.fixture
def client(make_client):
    return make_client("alice")

"""Shared fixtures: in-process Redis servers, properties and started managers."""

from __future__ import annotations

import time
from collections.abc import Callable

import fakeredis
import pytest

from redex.config.properties.session import SessionReplicationProperties
from redex.crypto.encryption import EncryptionSupport
from redex.session.manager import RedisSessionManager
from redex.web.context import WebSessionContext

PASSWORD = "p@ss"


@pytest.fixture(scope="session")
def encryption() -> EncryptionSupport:
    return EncryptionSupport(PASSWORD)


@pytest.fixture
def fake_server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(fake_server: fakeredis.FakeServer) -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(server=fake_server)


@pytest.fixture
def make_properties() -> Callable[..., SessionReplicationProperties]:
    def _make(**overrides: object) -> SessionReplicationProperties:
        values: dict[str, object] = {
            "key_password": PASSWORD,
            "key_prefix": "app",
            "subscriber_poll_seconds": 0.05,
            "expire_check_seconds": 0,
        }
        values.update(overrides)
        return SessionReplicationProperties(**values)

    return _make


@pytest.fixture
def make_manager(fake_server, make_properties):
    """Build started managers ("nodes") that share one fake Redis server."""
    started: list[RedisSessionManager] = []

    def _make(node_id: str, *, context: WebSessionContext | None = None, **overrides: object) -> RedisSessionManager:
        manager = RedisSessionManager(
            context or WebSessionContext(name="/app", session_timeout_mins=30),
            make_properties(node_id=node_id, **overrides),
            client=fakeredis.FakeRedis(server=fake_server),
        )
        manager.start()
        started.append(manager)
        return manager

    yield _make

    for manager in started:
        if manager.state.value == "RUNNING":
            manager.stop()


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll a predicate until it holds; subscriber callbacks arrive on other threads."""

    def _wait(predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.02) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait

"""End-to-end replication between two nodes sharing one Redis server."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from starlette.requests import Request
from starlette.responses import Response

from redex.codec.values import decode_value
from redex.crypto.encryption import AES_GCM_IV_LENGTH

KEY = b"redex:app:S1"
EVICTION_CHANNEL = "redex:sessionEviction:app"


@dataclass
class Cart:
    items: list[str] = field(default_factory=list)


class RecordingListener:
    def __init__(self):
        self.destroyed = []

    def session_destroyed(self, session):
        self.destroyed.append(session.id)


def _request(session_id, path="/checkout"):
    scope = {
        "type": "http",
        "method": "POST",
        "scheme": "http",
        "server": ("testserver", 80),
        "root_path": "",
        "path": path,
        "query_string": b"",
        "headers": [(b"cookie", f"JSESSIONID={session_id}".encode())],
    }
    return Request(scope)


def _complete(manager, session_id, path="/checkout"):
    manager.request_complete(_request(session_id, path), Response())


def _settle(sender, receiver, wait_until):
    """Wait until *receiver* has handled every eviction *sender* published so far."""
    marker = f"marker-{uuid.uuid4().hex}"
    receiver.create_session(marker)
    sender.create_session(marker)
    _complete(sender, marker)
    assert wait_until(lambda: receiver.find_local(marker) is None)
    sender.evict_session(marker)


class TestRoundTrip:
    def test_session_moves_between_nodes(self, make_manager, wait_until):
        node_a = make_manager("node-a")
        node_b = make_manager("node-b")

        session = node_a.create_session("S1")
        session.set_attribute("cart", Cart(["book"]))
        _complete(node_a, "S1")
        _settle(node_a, node_b, wait_until)

        on_b = node_b.find_session("S1")
        assert on_b is not None
        assert on_b.get_attribute("cart") == Cart(["book"])

        cart = on_b.get_attribute("cart")
        cart.items.append("pen")
        on_b.set_attribute("cart", cart)
        _complete(node_b, "S1")

        assert wait_until(lambda: node_a.find_local("S1") is None)
        back_on_a = node_a.find_session("S1")
        assert back_on_a is not session
        assert back_on_a.get_attribute("cart") == Cart(["book", "pen"])


class TestSelfEcho:
    def test_own_changeset_does_not_evict(self, make_manager, wait_until):
        node_a = make_manager("node-a")
        node_b = make_manager("node-b")

        node_b.create_session("S2")
        _complete(node_b, "S2")
        _settle(node_b, node_a, wait_until)
        assert node_a.find_session("S2") is not None

        own = node_a.create_session("S1")
        _complete(node_a, "S1")
        _complete(node_b, "S2")

        # Messages arrive in publish order: once S2 is gone, the echo of S1 was seen.
        assert wait_until(lambda: node_a.find_local("S2") is None)
        assert node_a.find_local("S1") is own


class TestConfidentiality:
    def test_primitives_plain_objects_encrypted(self, make_manager, redis_client):
        node_a = make_manager("node-a")
        session = node_a.create_session("S1")
        session.set_attribute("role", "admin")
        session.set_attribute("profile", {"email": "alice@example.com"})
        _complete(node_a, "S1")

        stored = redis_client.hgetall(KEY)
        assert decode_value("T", stored[b"dT:pt:role"]) == "admin"

        ciphertext = stored[b"so:ct:profile"]
        assert len(ciphertext) > AES_GCM_IV_LENGTH
        assert b"alice@example.com" not in ciphertext

        assert stored[b"dT:pt:redex:nodeId"].endswith(b"node-a")
        assert stored[b"dT:pt:redex:sessionId"].endswith(b"S1")


class TestDestruction:
    def test_remove_destroys_on_peers(self, make_manager, redis_client, wait_until):
        node_a = make_manager("node-a")
        node_b = make_manager("node-b")
        listener = RecordingListener()
        node_b.add_session_listener(listener)

        session = node_a.create_session("S1")
        _complete(node_a, "S1")
        _settle(node_a, node_b, wait_until)
        on_b = node_b.find_session("S1")
        assert on_b is not None

        node_a.remove(session)

        assert not redis_client.exists(KEY)
        assert wait_until(lambda: listener.destroyed == ["S1"])
        assert node_b.find_local("S1") is None
        assert not on_b.is_valid


class TestIgnoredRequests:
    def test_static_request_neither_writes_nor_publishes(self, make_manager, redis_client):
        node_a = make_manager("node-a", ignore_pattern=r"/static/.*")
        pubsub = redis_client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(EVICTION_CHANNEL)
        pubsub.get_message(timeout=0.1)

        node_a.create_session("S1")
        _complete(node_a, "S1", path="/static/app.css")

        assert not redis_client.exists(KEY)
        assert pubsub.get_message(timeout=0.2) is None
        pubsub.close()


class TestFullRewrite:
    def test_removed_attribute_disappears_from_store(self, make_manager, redis_client):
        node_a = make_manager("node-a")
        redis_client.hset(KEY, b"dT:pt:stale", b"\x00\x03old")

        session = node_a.create_session("S1")
        session.set_attribute("fresh", "yes")
        _complete(node_a, "S1")

        fields = redis_client.hkeys(KEY)
        assert b"dT:pt:fresh" in fields
        assert b"dT:pt:stale" not in fields

"""Tests for ReplicatedSession — metadata, attributes, store mapping and expiry."""

from __future__ import annotations

import pytest

from redex.codec.framing import (
    REDEX_AUTHTYPE_ATTR,
    REDEX_CREATION_TIME_ATTR,
    REDEX_IS_NEW_ATTR,
    REDEX_IS_VALID_ATTR,
    REDEX_LAST_ACCESSED_TIME_ATTR,
    REDEX_MAX_INACTIVE_INTERVAL_ATTR,
    REDEX_NODE_ID,
    REDEX_PRINCIPAL_ATTR,
    REDEX_SESSION_ID,
    REDEX_THIS_ACCESSED_TIME_ATTR,
)
from redex.codec.values import Int32
from redex.kernel.exceptions import InvalidSessionException
from redex.session.session import ReplicatedSession


class RecordingManager:
    """Stands in for the manager hooks a session calls while expiring."""

    def __init__(self):
        self.destroyed = []
        self.removed = []
        self.evicted = []

    def fire_session_destroyed(self, session):
        self.destroyed.append(session.id)

    def remove(self, session, update=False):
        self.removed.append((session.id, update))

    def evict_session(self, session_id):
        self.evicted.append(session_id)


def _valid_session(manager=None, session_id="S1"):
    session = ReplicatedSession(manager)
    session.set_id(session_id)
    session.set_valid(True)
    session.set_new(True)
    session.set_creation_time(1_000)
    session.max_inactive_interval = 1800
    return session


class TestAttributes:
    def test_set_get_remove(self):
        session = _valid_session()
        session.set_attribute("user", "alice")
        assert session.get_attribute("user") == "alice"
        session.remove_attribute("user")
        assert session.get_attribute("user") is None

    def test_none_value_removes(self):
        session = _valid_session()
        session.set_attribute("user", "alice")
        session.set_attribute("user", None)
        assert session.get_attribute_names() == []

    def test_internal_names_hidden(self):
        session = _valid_session()
        session.set_attribute("user", "alice")
        session.set_attribute(REDEX_NODE_ID, "node-a")
        assert session.get_attribute_names() == ["user"]


class TestLoad:
    def test_defaults_when_metadata_missing(self):
        session = ReplicatedSession()
        session.load({"user": "alice"})
        assert session.creation_time == 0
        assert session.last_accessed_time == 0
        assert session.this_accessed_time == 0
        assert session.max_inactive_interval == -1
        assert not session.is_new
        assert not session.is_valid
        assert session.auth_type is None
        assert session.get_attribute("user") == "alice"

    def test_metadata_and_attributes(self):
        session = ReplicatedSession()
        session.load(
            {
                REDEX_SESSION_ID: "S1",
                REDEX_NODE_ID: "node-a",
                REDEX_AUTHTYPE_ATTR: "FORM",
                REDEX_CREATION_TIME_ATTR: 10,
                REDEX_IS_NEW_ATTR: False,
                REDEX_IS_VALID_ATTR: True,
                REDEX_LAST_ACCESSED_TIME_ATTR: 20,
                REDEX_MAX_INACTIVE_INTERVAL_ATTR: Int32(600),
                REDEX_THIS_ACCESSED_TIME_ATTR: 30,
                REDEX_PRINCIPAL_ATTR: {"name": "alice"},
                "cart": ["sku-1"],
            }
        )
        assert session.auth_type == "FORM"
        assert (session.creation_time, session.last_accessed_time, session.this_accessed_time) == (10, 20, 30)
        assert session.max_inactive_interval == 600
        assert session.is_valid
        assert session.principal == {"name": "alice"}
        assert session.get_attribute_names() == ["cart"]

    def test_load_replaces_previous_attributes(self):
        session = ReplicatedSession()
        session.set_attribute("stale", 1)
        session.load({"fresh": 2})
        assert session.get_attribute_names() == ["fresh"]


class TestAttributeMap:
    def test_contains_metadata_and_attributes(self):
        session = _valid_session()
        session.set_attribute("user", "alice")
        attributes = session.to_attribute_map()
        assert attributes["user"] == "alice"
        assert attributes[REDEX_CREATION_TIME_ATTR] == 1_000
        assert attributes[REDEX_IS_NEW_ATTR] is True
        assert attributes[REDEX_IS_VALID_ATTR] is True
        assert attributes[REDEX_MAX_INACTIVE_INTERVAL_ATTR] == 1800
        assert type(attributes[REDEX_MAX_INACTIVE_INTERVAL_ATTR]) is Int32

    def test_unset_optional_metadata_omitted(self):
        attributes = _valid_session().to_attribute_map()
        assert REDEX_AUTHTYPE_ATTR not in attributes
        assert REDEX_PRINCIPAL_ATTR not in attributes

    def test_load_of_attribute_map_restores_session(self):
        original = _valid_session()
        original.auth_type = "BASIC"
        original.set_attribute("user", "alice")
        restored = ReplicatedSession()
        restored.load(original.to_attribute_map())
        assert restored.to_attribute_map() == original.to_attribute_map()


class TestAccess:
    def test_end_access_clears_new_and_promotes_access_time(self):
        session = _valid_session()
        session.access()
        session.end_access()
        assert not session.is_new
        assert session.last_accessed_time == session.this_accessed_time
        assert session.this_accessed_time > 1_000

    def test_has_expired(self):
        session = _valid_session()
        session.max_inactive_interval = 10
        assert not session.has_expired(now_ms=1_000 + 9_999)
        assert session.has_expired(now_ms=1_000 + 10_000)

    def test_negative_interval_never_expires(self):
        session = _valid_session()
        session.max_inactive_interval = -1
        assert not session.has_expired(now_ms=10**15)


class TestExpire:
    def test_expire_notifies_and_replicates(self):
        manager = RecordingManager()
        session = _valid_session(manager)
        session.set_attribute("user", "alice")
        session.expire()
        assert manager.destroyed == ["S1"]
        assert manager.removed == [("S1", True)]
        assert manager.evicted == []
        assert not session.is_valid
        assert session.get_attribute_names() == []

    def test_local_only_expire(self):
        manager = RecordingManager()
        session = _valid_session(manager)
        session.expire(True, replicate=False)
        assert manager.destroyed == ["S1"]
        assert manager.removed == []
        assert manager.evicted == ["S1"]

    def test_without_notify(self):
        manager = RecordingManager()
        _valid_session(manager).expire(False)
        assert manager.destroyed == []

    def test_expire_is_idempotent(self):
        manager = RecordingManager()
        session = _valid_session(manager)
        session.expire()
        session.expire()
        assert manager.destroyed == ["S1"]

    def test_invalidate(self):
        manager = RecordingManager()
        session = _valid_session(manager)
        session.invalidate()
        assert manager.removed == [("S1", True)]
        with pytest.raises(InvalidSessionException):
            session.invalidate()

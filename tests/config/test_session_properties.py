"""Tests for the bound property models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from redex.config.properties.logging import LoggingProperties
from redex.config.properties.session import SessionReplicationProperties


class TestSessionReplicationProperties:
    def test_defaults(self):
        props = SessionReplicationProperties(key_password="p@ss")
        assert props.redis_url == "redis://localhost:6379/0"
        assert props.key_prefix is None
        assert props.node_id is None
        assert props.ignore_pattern is None
        assert props.max_connections == 15
        assert props.pool_timeout_seconds == 5.0
        assert props.subscriber_poll_seconds == 1.0
        assert props.expire_check_seconds == 60

    def test_password_required(self):
        with pytest.raises(ValidationError):
            SessionReplicationProperties()

    def test_blank_password_rejected(self):
        with pytest.raises(ValidationError):
            SessionReplicationProperties(key_password="")

    def test_compiled_ignore_pattern(self):
        props = SessionReplicationProperties(key_password="p@ss", ignore_pattern=r"^/static/.*")
        pattern = props.compiled_ignore_pattern()
        assert pattern is not None
        assert pattern.fullmatch("/static/x.css")
        assert not pattern.fullmatch("/api/static/x.css")

    def test_no_ignore_pattern(self):
        assert SessionReplicationProperties(key_password="p@ss").compiled_ignore_pattern() is None

    def test_frozen(self):
        props = SessionReplicationProperties(key_password="p@ss")
        with pytest.raises(ValidationError):
            props.key_prefix = "other"

    def test_pool_needs_room_for_both_subscribers(self):
        with pytest.raises(ValidationError):
            SessionReplicationProperties(key_password="p@ss", max_connections=1)


class TestLoggingProperties:
    def test_defaults(self):
        props = LoggingProperties()
        assert props.format == "console"
        assert props.level == {"root": "INFO"}

    def test_level_default_not_shared(self):
        LoggingProperties().level["redex"] = "DEBUG"
        assert LoggingProperties().level == {"root": "INFO"}

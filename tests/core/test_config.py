"""Tests for Config — dot-notation access, files, placeholders, env overrides and binding."""

from __future__ import annotations

from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from redex.config.properties.context import ContextProperties
from redex.config.properties.session import SessionReplicationProperties
from redex.core.config import Config, config_properties, env_key
from redex.kernel.exceptions import ConfigurationException


class TestConfigGet:
    def test_dot_notation(self):
        config = Config({"redex": {"session": {"redis_url": "redis://cache:6379/1"}}})
        assert config.get("redex.session.redis_url") == "redis://cache:6379/1"

    def test_missing_key_returns_default(self):
        assert Config({}).get("redex.session.key_prefix", "fallback") == "fallback"

    def test_env_var_wins(self, monkeypatch):
        monkeypatch.setenv("REDEX_SESSION_KEY_PREFIX", "from-env")
        config = Config({"redex": {"session": {"key_prefix": "from-file"}}})
        assert config.get("redex.session.key_prefix") == "from-env"

    def test_env_key(self):
        assert env_key("redex.session.key_password") == "REDEX_SESSION_KEY_PASSWORD"

    def test_placeholder_from_env(self, monkeypatch):
        monkeypatch.setenv("REDIS_HOST", "redis.internal")
        config = Config({"redex": {"session": {"redis_url": "redis://${REDIS_HOST}:6379/0"}}})
        assert config.get("redex.session.redis_url") == "redis://redis.internal:6379/0"

    def test_placeholder_from_config_with_default(self):
        config = Config({"app": {"prefix": "${missing.key:shop}"}})
        assert config.get("app.prefix") == "shop"

    def test_unresolvable_placeholder_raises(self):
        config = Config({"app": {"prefix": "${definitely_not_set_anywhere}"}})
        with pytest.raises(ConfigurationException):
            config.get("app.prefix")

    def test_get_section(self):
        config = Config({"redex": {"context": {"name": "/shop", "session_timeout_mins": 5}}})
        assert config.get_section("redex.context") == {"name": "/shop", "session_timeout_mins": 5}


class TestConfigFromFile:
    def test_yaml(self, tmp_path):
        (tmp_path / "redex.yaml").write_text("redex:\n  session:\n    key_prefix: base\n    redis_url: redis://a\n")

        config = Config.from_file(tmp_path / "redex.yaml")

        assert config.get("redex.session.key_prefix") == "base"
        assert config.get("redex.session.redis_url") == "redis://a"

    def test_toml(self, tmp_path):
        (tmp_path / "redex.toml").write_text('[redex.context]\nname = "/shop"\n')
        config = Config.from_file(tmp_path / "redex.toml")
        assert config.get("redex.context.name") == "/shop"

    def test_missing_file_is_empty(self, tmp_path):
        config = Config.from_file(tmp_path / "absent.yaml")
        assert config.get_section("redex") == {}


class TestBindPydantic:
    def test_camel_case_keys(self):
        config = Config({"redex": {"session": {"keyPassword": "p@ss", "keyPrefix": "shop", "maxConnections": 4}}})
        props = config.bind(SessionReplicationProperties)
        assert props.key_password.get_secret_value() == "p@ss"
        assert props.key_prefix == "shop"
        assert props.max_connections == 4

    def test_env_overrides_password(self, monkeypatch):
        monkeypatch.setenv("REDEX_SESSION_KEY_PASSWORD", "from-env")
        config = Config({"redex": {"session": {"keyPassword": "from-file"}}})
        props = config.bind(SessionReplicationProperties)
        assert props.key_password.get_secret_value() == "from-env"

    def test_placeholders_resolved_before_validation(self, monkeypatch):
        monkeypatch.delenv("REDEX_SESSION_KEY_PASSWORD", raising=False)
        monkeypatch.setenv("SHOP_SESSION_SECRET", "from-placeholder")
        config = Config(
            {
                "redex": {
                    "session": {
                        "keyPassword": "${SHOP_SESSION_SECRET}",
                        "redisUrl": "redis://${shop.redis_host:localhost}:6379/0",
                    }
                }
            }
        )
        props = config.bind(SessionReplicationProperties)
        assert props.key_password.get_secret_value() == "from-placeholder"
        assert props.redis_url == "redis://localhost:6379/0"

    def test_unresolvable_placeholder_in_section_raises(self, monkeypatch):
        monkeypatch.delenv("REDEX_SESSION_KEY_PASSWORD", raising=False)
        config = Config({"redex": {"session": {"keyPassword": "${definitely_not_set_anywhere}"}}})
        with pytest.raises(ConfigurationException):
            config.bind(SessionReplicationProperties)

    def test_missing_password_is_configuration_error(self, monkeypatch):
        monkeypatch.delenv("REDEX_SESSION_KEY_PASSWORD", raising=False)
        with pytest.raises(ConfigurationException) as exc_info:
            Config({}).bind(SessionReplicationProperties)
        assert exc_info.value.code == "CONFIG_INVALID"

    def test_invalid_ignore_pattern_is_configuration_error(self):
        config = Config({"redex": {"session": {"key_password": "x", "ignore_pattern": "(unclosed"}}})
        with pytest.raises(ConfigurationException):
            config.bind(SessionReplicationProperties)

    def test_password_is_not_echoed(self):
        config = Config({"redex": {"session": {"key_password": "s3cret"}}})
        props = config.bind(SessionReplicationProperties)
        assert "s3cret" not in repr(props)

    def test_undecorated_class_rejected(self):
        class Plain(BaseModel):
            value: int = 1

        with pytest.raises(ConfigurationException):
            Config({}).bind(Plain)


class TestBindDataclass:
    def test_defaults(self):
        props = Config({}).bind(ContextProperties)
        assert props.name == "/"
        assert props.session_timeout_mins == 30
        assert props.session_cookie_name is None

    def test_env_string_coerced_to_int(self, monkeypatch):
        monkeypatch.setenv("REDEX_CONTEXT_SESSION_TIMEOUT_MINS", "45")
        props = Config({}).bind(ContextProperties)
        assert props.session_timeout_mins == 45

    def test_custom_dataclass(self):
        @config_properties(prefix="custom.thing")
        @dataclass
        class Thing:
            enabled: bool = False
            ratio: float = 0.5

        props = Config({"custom": {"thing": {"enabled": True, "ratio": 0.25}}}).bind(Thing)
        assert props.enabled is True
        assert props.ratio == 0.25

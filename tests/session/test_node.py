"""Tests for node identity helpers."""

from __future__ import annotations

import subprocess
import uuid

import pytest

from redex.session import node
from redex.session.node import generate_node_id, get_host_name, normalize_key_prefix


class TestNormalizeKeyPrefix:
    @pytest.mark.parametrize(
        ("context_name", "prefix"),
        [("/app", "app"), ("/shop/v2", "shop:v2"), ("", ""), ("/", ""), ("plain", "plain")],
    )
    def test_normalize(self, context_name, prefix):
        assert normalize_key_prefix(context_name) == prefix


class TestGetHostName:
    def test_override_wins(self, monkeypatch):
        monkeypatch.setattr(node.subprocess, "run", pytest.fail)
        assert get_host_name("web-1.example") == "web-1.example"

    def test_hostname_command(self, monkeypatch):
        def fake_run(args, **kwargs):
            assert args == ["hostname"]
            return subprocess.CompletedProcess(args, 0, stdout="web-2\n", stderr="")

        monkeypatch.setattr(node.subprocess, "run", fake_run)
        assert get_host_name() == "web-2"

    def test_falls_back_to_dns(self, monkeypatch):
        def failing_run(args, **kwargs):
            raise FileNotFoundError("hostname")

        monkeypatch.setattr(node.subprocess, "run", failing_run)
        monkeypatch.setattr(node.socket, "getfqdn", lambda: "web-3.local")
        assert get_host_name() == "web-3.local"


class TestGenerateNodeId:
    def test_format(self):
        node_id = generate_node_id("web-1", "app")
        host, prefix, suffix = node_id.split(":", 2)
        assert (host, prefix) == ("web-1", "app")
        uuid.UUID(suffix)

    def test_unique_per_instance(self):
        assert generate_node_id("web-1", "app") != generate_node_id("web-1", "app")

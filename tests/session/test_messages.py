"""Tests for the peer message wire format."""

from __future__ import annotations

import pytest

from redex.kernel.exceptions import CodecException
from redex.session.messages import SessionMessage


class TestSessionMessage:
    def test_wire_format(self):
        assert SessionMessage("node-a", "S1").to_bytes() == b"\x00\x06node-a\x00\x02S1"

    def test_decode(self):
        message = SessionMessage.from_bytes(b"\x00\x06node-a\x00\x02S1")
        assert message == SessionMessage("node-a", "S1")

    def test_unicode_ids(self):
        message = SessionMessage("hôst:app:1", "ß")
        assert SessionMessage.from_bytes(message.to_bytes()) == message

    def test_truncated(self):
        with pytest.raises(CodecException):
            SessionMessage.from_bytes(b"\x00\x06node-a\x00\x05S1")

    def test_trailing_bytes(self):
        with pytest.raises(CodecException) as exc_info:
            SessionMessage.from_bytes(b"\x00\x06node-a\x00\x02S1!")
        assert exc_info.value.code == "CODEC_TRAILING"

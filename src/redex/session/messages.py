# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Peer notification messages exchanged over the eviction and destruction channels.

Wire format: two length-prefixed UTF-8 strings, ``source_node_id`` then
``session_id``. The format is fixed and carries no version byte.
"""

from __future__ import annotations

from dataclasses import dataclass

from redex.codec.values import read_utf, write_utf
from redex.kernel.exceptions import CodecException


@dataclass(frozen=True)
class SessionMessage:
    """``(source_node_id, session_id)`` announced to every peer."""

    source_node_id: str
    session_id: str

    def to_bytes(self) -> bytes:
        return write_utf(self.source_node_id) + write_utf(self.session_id)

    @classmethod
    def from_bytes(cls, data: bytes) -> SessionMessage:
        source_node_id, offset = read_utf(data)
        session_id, offset = read_utf(data, offset)
        if offset != len(data):
            raise CodecException(
                f"Trailing bytes after session message: {len(data) - offset}",
                code="CODEC_TRAILING",
            )
        return cls(source_node_id, session_id)

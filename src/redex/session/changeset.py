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
"""Changeset assembly — the immutable snapshot written at request end."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from redex.codec.framing import REDEX_NODE_ID, REDEX_SESSION_ID, REDEX_UID
from redex.session.session import ReplicatedSession


@dataclass(frozen=True)
class SessionChangeset:
    """Everything a single write transaction needs.

    ``attributes`` always holds ``redex:sessionId`` and ``redex:nodeId`` and
    never holds ``None`` values.
    """

    session_id: str
    node_id: str
    ttl_seconds: int
    uid: str | None = None
    attributes: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


def build_changeset(
    session: ReplicatedSession,
    node_id: str,
    ttl_seconds: int,
    uid: str | None = None,
) -> SessionChangeset:
    """Snapshot *session* for the store.

    Merges application attributes, session metadata, the mandatory id
    attributes and the optional authenticated user id.
    """
    session_id = session.id
    if not session_id:
        raise ValueError("Cannot build a changeset for a session without an id")

    attributes: dict[str, Any] = {}
    for name in session.get_attribute_names():
        value = session.get_attribute(name)
        if value is not None:
            attributes[name] = value

    for name, value in session.metadata_attributes().items():
        if value is not None:
            attributes[name] = value

    attributes[REDEX_SESSION_ID] = session_id
    attributes[REDEX_NODE_ID] = node_id
    if uid is not None:
        attributes[REDEX_UID] = uid

    return SessionChangeset(
        session_id=session_id,
        node_id=node_id,
        ttl_seconds=ttl_seconds,
        uid=uid,
        attributes=MappingProxyType(attributes),
    )

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
"""ReplicatedSession — server-side session whose state is persisted to the store."""

from __future__ import annotations

import threading
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from redex.codec.framing import (
    REDEX_AUTHTYPE_ATTR,
    REDEX_CREATION_TIME_ATTR,
    REDEX_IS_NEW_ATTR,
    REDEX_IS_VALID_ATTR,
    REDEX_LAST_ACCESSED_TIME_ATTR,
    REDEX_MAX_INACTIVE_INTERVAL_ATTR,
    REDEX_PRINCIPAL_ATTR,
    REDEX_THIS_ACCESSED_TIME_ATTR,
)
from redex.codec.values import Int32
from redex.kernel.exceptions import InvalidSessionException

if TYPE_CHECKING:
    from redex.session.manager import RedisSessionManager

REDEX_PREFIX = "redex:"


def now_millis() -> int:
    return time.time_ns() // 1_000_000


def is_internal(name: str) -> bool:
    """Return True for attribute names reserved for replication metadata."""
    return name.startswith(REDEX_PREFIX)


class ReplicatedSession:
    """Wraps session metadata and the application attribute map.

    Times are epoch milliseconds; ``max_inactive_interval`` is in seconds and
    a negative value means the session never times out.

    Attributes:
        auth_type: Authentication scheme that established the session, if any.
        principal: Authenticated principal object, if any.
    """

    def __init__(self, manager: RedisSessionManager | None = None) -> None:
        self._manager = manager
        self._id: str | None = None
        self._attributes: dict[str, Any] = {}
        self._lock = threading.RLock()
        self._is_new = False
        self._is_valid = False
        self._expiring = False
        self.auth_type: str | None = None
        self.principal: Any = None
        self.creation_time = 0
        self.last_accessed_time = 0
        self.this_accessed_time = 0
        self.max_inactive_interval = -1

    def __repr__(self) -> str:
        return f"ReplicatedSession(id={self._id!r}, valid={self._is_valid}, new={self._is_new})"

    @property
    def id(self) -> str | None:
        return self._id

    @property
    def is_new(self) -> bool:
        return self._is_new

    @property
    def is_valid(self) -> bool:
        return self._is_valid and not self._expiring

    def set_id(self, session_id: str) -> None:
        self._id = session_id

    def set_new(self, is_new: bool) -> None:
        self._is_new = is_new

    def set_valid(self, is_valid: bool) -> None:
        self._is_valid = is_valid

    def set_creation_time(self, millis: int) -> None:
        """Set creation time and reset both access times to it."""
        self.creation_time = millis
        self.last_accessed_time = millis
        self.this_accessed_time = millis

    # ------------------------------------------------------------------
    # Request bracketing
    # ------------------------------------------------------------------

    def access(self) -> None:
        """Record the start of a request that uses this session."""
        self.this_accessed_time = now_millis()

    def end_access(self) -> None:
        """Record the end of a request: the session is no longer new."""
        self._is_new = False
        self.this_accessed_time = now_millis()
        self.last_accessed_time = self.this_accessed_time

    def has_expired(self, now_ms: int | None = None) -> bool:
        """Return True if the session has been idle longer than its interval."""
        if self.max_inactive_interval < 0:
            return False
        now_ms = now_millis() if now_ms is None else now_ms
        return now_ms - self.this_accessed_time >= self.max_inactive_interval * 1000

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    def get_attribute(self, name: str) -> Any | None:
        """Return the session attribute value, or ``None`` if absent."""
        with self._lock:
            return self._attributes.get(name)

    def set_attribute(self, name: str, value: Any) -> None:
        """Set a session attribute. A ``None`` value removes it."""
        if value is None:
            self.remove_attribute(name)
            return
        with self._lock:
            self._attributes[name] = value

    def remove_attribute(self, name: str) -> None:
        """Remove a session attribute if it exists."""
        with self._lock:
            self._attributes.pop(name, None)

    def get_attribute_names(self) -> list[str]:
        """Return application attribute names, excluding replication metadata."""
        with self._lock:
            return [name for name in self._attributes if not is_internal(name)]

    # ------------------------------------------------------------------
    # Store mapping
    # ------------------------------------------------------------------

    def load(self, session_map: Mapping[str, Any]) -> None:
        """Rebuild this session from a decoded store record.

        Missing metadata falls back to the defaults of a fresh container
        session; ``redex:`` entries are never copied into the attributes.
        """
        self.auth_type = session_map.get(REDEX_AUTHTYPE_ATTR)
        self.creation_time = int(session_map.get(REDEX_CREATION_TIME_ATTR, 0))
        self._is_new = bool(session_map.get(REDEX_IS_NEW_ATTR, False))
        self._is_valid = bool(session_map.get(REDEX_IS_VALID_ATTR, False))
        self.last_accessed_time = int(session_map.get(REDEX_LAST_ACCESSED_TIME_ATTR, self.creation_time))
        self.max_inactive_interval = int(session_map.get(REDEX_MAX_INACTIVE_INTERVAL_ATTR, -1))
        self.principal = session_map.get(REDEX_PRINCIPAL_ATTR)
        self.this_accessed_time = int(session_map.get(REDEX_THIS_ACCESSED_TIME_ATTR, self.creation_time))

        with self._lock:
            self._attributes.clear()
            for name, value in session_map.items():
                if not is_internal(name):
                    self._attributes[name] = value

    def to_attribute_map(self) -> dict[str, Any]:
        """Return application attributes plus metadata."""
        with self._lock:
            attributes = {
                name: value
                for name, value in self._attributes.items()
                if value is not None and not is_internal(name)
            }
        attributes.update(self.metadata_attributes())
        return attributes

    def metadata_attributes(self) -> dict[str, Any]:
        """Return the ``redex:session:*`` metadata, omitting unset optional fields."""
        attributes: dict[str, Any] = {}
        if self.auth_type is not None:
            attributes[REDEX_AUTHTYPE_ATTR] = self.auth_type
        attributes[REDEX_CREATION_TIME_ATTR] = int(self.creation_time)
        attributes[REDEX_IS_NEW_ATTR] = bool(self._is_new)
        attributes[REDEX_IS_VALID_ATTR] = bool(self._is_valid)
        attributes[REDEX_LAST_ACCESSED_TIME_ATTR] = int(self.last_accessed_time)
        attributes[REDEX_MAX_INACTIVE_INTERVAL_ATTR] = Int32(self.max_inactive_interval)
        if self.principal is not None:
            attributes[REDEX_PRINCIPAL_ATTR] = self.principal
        attributes[REDEX_THIS_ACCESSED_TIME_ATTR] = int(self.this_accessed_time)
        return attributes

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def expire(self, notify: bool = True, *, replicate: bool = True) -> None:
        """Destroy this session.

        Args:
            notify: Fire ``session_destroyed`` on the manager's listeners.
            replicate: Delete the stored record and tell peers to destroy
                their copies. ``False`` only drops the local cache entry.
        """
        with self._lock:
            if self._expiring or not self._is_valid:
                return
            self._expiring = True

        try:
            if self._manager is not None:
                if notify:
                    self._manager.fire_session_destroyed(self)
                if replicate:
                    self._manager.remove(self, True)
                elif self._id is not None:
                    self._manager.evict_session(self._id)
        finally:
            with self._lock:
                self._is_valid = False
                self._expiring = False
                self._attributes.clear()

    def invalidate(self) -> None:
        """Invalidate this session and every replica of it."""
        if not self.is_valid:
            raise InvalidSessionException(
                f"Session {self._id} has already been invalidated",
                code="SESSION_INVALID",
            )
        self.expire()

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
"""Ports between the session manager and the hosting web container."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from redex.session.session import ReplicatedSession


@runtime_checkable
class SessionRemover(Protocol):
    """Local-cache callbacks invoked by the pub/sub subscribers.

    Implementations must only touch local state; no network I/O.
    """

    def evict_session(self, session_id: str) -> None:
        """Drop a session from the local cache. Take no further action."""
        ...

    def destroy_session(self, session_id: str) -> None:
        """Drop a session from the local cache and run its destruction hooks."""
        ...


@runtime_checkable
class SessionListener(Protocol):
    """Notified when a session is destroyed (invalidated or expired)."""

    def session_destroyed(self, session: ReplicatedSession) -> None: ...


@runtime_checkable
class Pipeline(Protocol):
    """The container's request pipeline the request-end hook is installed into."""

    def add_filter(self, web_filter: Any) -> None: ...

    def remove_filter(self, web_filter: Any) -> None: ...


@runtime_checkable
class SessionContext(Protocol):
    """What the manager reads from its hosting web context."""

    @property
    def name(self) -> str: ...

    @property
    def session_timeout_mins(self) -> int: ...

    @property
    def session_cookie_name(self) -> str | None: ...

    @property
    def pipeline(self) -> Pipeline: ...

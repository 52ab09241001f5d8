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
"""Request helpers: session id extraction, remote user and session access."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from redex.kernel.exceptions import LifecycleException

if TYPE_CHECKING:
    from redex.session.session import ReplicatedSession


def _set_cookie_value(set_cookie: str) -> str | None:
    """Return the value of a ``name=value; attr...`` header, ``None`` if empty."""
    stop = set_cookie.find(";")
    if stop == -1:
        stop = len(set_cookie)
    value = set_cookie[set_cookie.find("=") + 1 : stop].strip().strip('"')
    return value or None


def to_session_id(request: Any, response: Any | None, cookie_name: str) -> str | None:
    """Return the session id a request ended with.

    A ``Set-Cookie`` for *cookie_name* on the response wins, since it carries
    a session created (or cleared) during the request. Otherwise the request
    cookie of the same name is used.
    """
    if response is not None:
        prefix = f"{cookie_name}="
        for header in response.headers.getlist("set-cookie"):
            if header.startswith(prefix):
                return _set_cookie_value(header)

    return request.cookies.get(cookie_name) or None


def remote_user(request: Any) -> str | None:
    """Return the authenticated user id of *request*, or ``None``.

    Looks at ``request.state.security_context.user_id`` first, then at an
    authenticated Starlette ``scope["user"]``.
    """
    security_context = getattr(request.state, "security_context", None)
    user_id = getattr(security_context, "user_id", None)
    if user_id:
        return str(user_id)

    user = request.scope.get("user")
    if user is not None and getattr(user, "is_authenticated", False):
        return str(user.display_name) or None
    return None


def get_session(request: Any, create: bool = False) -> ReplicatedSession | None:
    """Return the request's valid session, creating one when *create* is set.

    Requires the session replication filter to have run for this request.
    """
    session: ReplicatedSession | None = getattr(request.state, "session", None)
    if session is not None and session.is_valid:
        return session
    if not create:
        return None

    manager = getattr(request.state, "session_manager", None)
    if manager is None:
        raise LifecycleException(
            "No session manager is attached to this request",
            code="LIFECYCLE_NOT_RUNNING",
        )
    session = manager.create_session()
    request.state.session = session
    return session

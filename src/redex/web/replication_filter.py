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
"""SessionReplicationFilter — the request-end hook of the session manager."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from redex.web.filters import OncePerRequestFilter
from redex.web.ports.filter import CallNext

if TYPE_CHECKING:
    from redex.session.manager import RedisSessionManager

_logger = logging.getLogger(__name__)


class SessionReplicationFilter(OncePerRequestFilter):
    """Resolves the request's session and replicates it once the response exists.

    Before the handler runs, the session named by the request cookie is
    looked up (local cache, then Redis) and exposed as
    ``request.state.session``. After the handler, a cookie is set for a
    session created during the request or cleared for one invalidated during
    it. Sessions invalidated by the handler are deleted from Redis and
    :meth:`RedisSessionManager.request_complete` runs, both on a worker
    thread. Blocking Redis calls never run on the event loop.
    """

    def __init__(self, manager: RedisSessionManager) -> None:
        self._manager = manager

    async def do_filter(self, request: Any, call_next: CallNext) -> Any:
        manager = self._manager
        loop = asyncio.get_running_loop()

        requested_id = request.cookies.get(manager.session_cookie_name) or None
        session = None
        if requested_id is not None:
            session = await loop.run_in_executor(None, manager.find_session, requested_id)
            if session is not None and session.is_valid:
                session.access()
            else:
                session = None

        request.state.session_manager = manager
        request.state.requested_session_id = requested_id
        request.state.session = session

        response = None
        removed: list[str] = []
        try:
            with manager.deferring_removals() as removed:
                response = await call_next(request)
            self._apply_session_cookie(request, response, session)
        finally:
            try:
                await loop.run_in_executor(None, self._complete, request, response, removed)
            except Exception:
                _logger.exception("Session replication failed for %s", request.url.path)
                raise
        return response

    def _complete(self, request: Any, response: Any, removed: list[str]) -> None:
        self._manager.remove_stored(removed)
        self._manager.request_complete(request, response)

    def _apply_session_cookie(self, request: Any, response: Any, requested: Any) -> None:
        manager = self._manager
        current = getattr(request.state, "session", None)
        cookie_path = manager.cookie_path

        if current is not None and current.is_valid and current is not requested:
            response.set_cookie(
                key=manager.session_cookie_name,
                value=current.id,
                path=cookie_path,
                httponly=True,
                samesite="lax",
            )
        elif requested is not None and not requested.is_valid:
            response.delete_cookie(key=manager.session_cookie_name, path=cookie_path)

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
"""FilterPipeline — the request pipeline the session manager hooks into.

:class:`FilterPipeline` holds the ordered filters; filters can be added
and removed while the application runs. :class:`FilterPipelineMiddleware`
is the pure ASGI middleware that executes the pipeline's current filters
around the downstream application.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import Any, cast

from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from redex.web.ports.filter import CallNext, WebFilter

_logger = logging.getLogger(__name__)


class FilterPipeline:
    """Thread-safe ordered list of :class:`WebFilter` instances."""

    def __init__(self, filters: Iterable[WebFilter] = ()) -> None:
        self._filters: list[WebFilter] = list(filters)
        self._lock = threading.Lock()

    def add_filter(self, web_filter: WebFilter) -> None:
        """Append *web_filter*; it runs inside every filter added before it."""
        with self._lock:
            self._filters.append(web_filter)
        _logger.debug("Added filter %s to the pipeline", type(web_filter).__name__)

    def remove_filter(self, web_filter: WebFilter) -> None:
        """Remove *web_filter* if present."""
        with self._lock:
            if web_filter in self._filters:
                self._filters.remove(web_filter)
        _logger.debug("Removed filter %s from the pipeline", type(web_filter).__name__)

    @property
    def filters(self) -> list[WebFilter]:
        """Snapshot of the current filters, outermost first."""
        with self._lock:
            return list(self._filters)

    def __len__(self) -> int:
        with self._lock:
            return len(self._filters)


class FilterPipelineMiddleware:
    """Pure ASGI middleware that runs a :class:`FilterPipeline`.

    The filter list is read per request, so filters installed after the
    application was built (e.g. at lifespan startup) take effect.
    """

    def __init__(self, app: ASGIApp, pipeline: FilterPipeline) -> None:
        self.app = app
        self._pipeline = pipeline

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        filters = self._pipeline.filters
        if not filters:
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive, send)

        async def _call_app(req: Any) -> Response:
            """Terminal: run the downstream app and buffer its response."""
            status_code = 200
            raw_headers: list[tuple[bytes, bytes]] = []
            body_parts: list[bytes] = []

            async def _capture(message: Any) -> None:
                nonlocal status_code, raw_headers
                if message["type"] == "http.response.start":
                    status_code = message["status"]
                    raw_headers = list(message.get("headers", []))
                elif message["type"] == "http.response.body":
                    body = message.get("body", b"")
                    if body:
                        body_parts.append(body)

            await self.app(scope, receive, _capture)

            response = Response(content=b"".join(body_parts), status_code=status_code)
            response.raw_headers[:] = raw_headers
            return response

        chain: CallNext = _call_app
        for web_filter in reversed(filters):
            chain = _wrap(web_filter, chain)

        response = cast(Response, await chain(request))
        await response(scope, receive, send)


def _wrap(web_filter: WebFilter, next_call: CallNext) -> CallNext:
    async def _inner(request: Request) -> Response:
        if web_filter.should_not_filter(request):
            return cast(Response, await next_call(request))
        return cast(Response, await web_filter.do_filter(request, next_call))

    return _inner

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
"""Starlette application factory with replicated sessions."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Iterable, Sequence

from redis import Redis
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.routing import BaseRoute

from redex.codec.objects import TypeResolver
from redex.config.properties.context import ContextProperties
from redex.config.properties.session import SessionReplicationProperties
from redex.core.config import Config
from redex.logging.port import LoggingPort
from redex.logging.structlog_adapter import StructlogAdapter
from redex.session.manager import RedisSessionManager
from redex.session.ports.outbound import SessionListener
from redex.web.context import WebSessionContext
from redex.web.pipeline import FilterPipeline, FilterPipelineMiddleware

_logger = logging.getLogger(__name__)


def create_app(
    config: Config,
    routes: Sequence[BaseRoute] = (),
    *,
    debug: bool = False,
    client: Redis | None = None,
    resolver: TypeResolver | None = None,
    listeners: Iterable[SessionListener] = (),
    logging_port: LoggingPort | None = None,
) -> Starlette:
    """Create a Starlette application whose sessions are replicated through Redis.

    Configures logging from ``redex.logging``, binds ``redex.session`` and
    ``redex.context``, and builds the request pipeline and the session
    manager. The manager is started and stopped by the ASGI lifespan, which
    installs its request-end hook into the pipeline.

    The manager is exposed as ``app.state.session_manager``.
    """
    (logging_port or StructlogAdapter()).configure(config)

    session_properties = config.bind(SessionReplicationProperties)
    context = WebSessionContext.from_properties(config.bind(ContextProperties), FilterPipeline())
    manager = RedisSessionManager(context, session_properties, client=client, resolver=resolver)
    for listener in listeners:
        manager.add_session_listener(listener)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, manager.start)
        try:
            yield
        finally:
            await loop.run_in_executor(None, manager.stop)

    app = Starlette(
        debug=debug,
        routes=list(routes),
        middleware=[Middleware(FilterPipelineMiddleware, pipeline=context.pipeline)],
        lifespan=lifespan,
    )
    app.state.session_manager = manager
    app.state.session_context = context
    _logger.debug("Created application for context %r", context.name)
    return app


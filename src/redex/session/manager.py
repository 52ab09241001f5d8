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
"""RedisSessionManager — the session manager façade for one web context.

Sessions are cached locally and written through to Redis at the end of
every request. Peers are told to drop their stale copies over pub/sub.
"""

from __future__ import annotations

import contextlib
import logging
import re
import secrets
import threading
from collections.abc import Iterable, Iterator
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from redis import Redis

from redex.codec.framing import REDEX_NODE_ID
from redex.codec.objects import TypeResolver
from redex.config.properties.session import SessionReplicationProperties
from redex.crypto.encryption import EncryptionSupport
from redex.kernel.exceptions import LifecycleException, RedexException
from redex.kernel.lifecycle import LifecycleState
from redex.session.changeset import build_changeset
from redex.session.node import generate_node_id, get_host_name, normalize_key_prefix
from redex.session.ports.outbound import SessionContext, SessionListener
from redex.session.session import ReplicatedSession, now_millis
from redex.store.redis_service import RedisSessionService
from redex.store.subscribers import SessionDestructionSubscriber, SessionEvictionSubscriber
from redex.web.replication_filter import SessionReplicationFilter
from redex.web.request_support import remote_user, to_session_id

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

_logger = logging.getLogger(__name__)

DEFAULT_SESSION_COOKIE_NAME = "JSESSIONID"

# Store loads retried when a peer eviction races the load.
MAX_LOAD_ATTEMPTS = 3

# Session ids whose store removal waits for the end of the current request.
_deferred_removals: ContextVar[list[str] | None] = ContextVar("redex_deferred_removals", default=None)


class RedisSessionManager:
    """Replicates sessions of one web context across a fleet through Redis.

    Implements :class:`~redex.session.ports.outbound.SessionRemover` for the
    subscribers and :class:`~redex.kernel.lifecycle.Lifecycle` for its host.

    Args:
        context: The hosting web context (name, timeout, cookie, pipeline).
        properties: Bound ``redex.session`` configuration.
        client: Optional pre-built Redis client (``decode_responses=False``);
            when omitted a pooled client is created from ``redis_url``.
        resolver: Type resolver used when loading opaque attribute values.
    """

    def __init__(
        self,
        context: SessionContext,
        properties: SessionReplicationProperties,
        *,
        client: Redis | None = None,
        resolver: TypeResolver | None = None,
    ) -> None:
        self._context = context
        self._properties = properties
        self._client = client
        self._resolver = resolver

        self._state = LifecycleState.STOPPED
        self._state_lock = threading.Lock()
        self._sessions: dict[str, ReplicatedSession] = {}
        self._sessions_lock = threading.RLock()
        # Evictions seen per id while a store load for that id is in flight.
        self._loads_in_flight: dict[str, int] = {}
        self._evictions_during_load: dict[str, int] = {}
        self._listeners: list[SessionListener] = []

        self._service: RedisSessionService | None = None
        self._filter: SessionReplicationFilter | None = None
        self._eviction_subscriber: SessionEvictionSubscriber | None = None
        self._destruction_subscriber: SessionDestructionSubscriber | None = None
        self._reaper: threading.Thread | None = None
        self._reaper_stop = threading.Event()

        self._node_id: str | None = None
        self._key_prefix: str | None = None
        self._session_cookie_name = DEFAULT_SESSION_COOKIE_NAME
        self._session_timeout_seconds = 0
        self._ignore_pattern: re.Pattern[str] | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def node_id(self) -> str | None:
        return self._node_id

    @property
    def key_prefix(self) -> str | None:
        return self._key_prefix

    @property
    def session_cookie_name(self) -> str:
        return self._session_cookie_name

    @property
    def session_timeout_seconds(self) -> int:
        return self._session_timeout_seconds

    @property
    def service(self) -> RedisSessionService | None:
        return self._service

    @property
    def cookie_path(self) -> str:
        return self._context.name or "/"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Connect to Redis, install the request-end hook and start both subscribers."""
        with self._state_lock:
            if self._state is not LifecycleState.STOPPED:
                raise LifecycleException(
                    f"Cannot start session manager in state {self._state.value}",
                    code="LIFECYCLE_ILLEGAL_STATE",
                )
            self._state = LifecycleState.STARTING

        try:
            self._start_internal()
        except Exception as exc:
            _logger.error("Session manager failed to start; rolling back")
            self._teardown()
            self._state = LifecycleState.STOPPED
            if isinstance(exc, RedexException):
                raise
            raise LifecycleException(
                "Session manager failed to start",
                code="LIFECYCLE_START_FAILED",
            ) from exc

        self._state = LifecycleState.RUNNING
        _logger.info(
            "Session manager started: node_id=%s key_prefix=%r timeout=%ss",
            self._node_id,
            self._key_prefix,
            self._session_timeout_seconds,
        )

    def stop(self) -> None:
        """Stop subscribers, remove the hook and release Redis, in reverse start order."""
        with self._state_lock:
            if self._state is not LifecycleState.RUNNING:
                raise LifecycleException(
                    f"Cannot stop session manager in state {self._state.value}",
                    code="LIFECYCLE_ILLEGAL_STATE",
                )
            self._state = LifecycleState.STOPPING

        self._teardown()
        with self._sessions_lock:
            self._sessions.clear()
        self._state = LifecycleState.STOPPED
        _logger.info("Session manager stopped: node_id=%s", self._node_id)

    def _start_internal(self) -> None:
        props = self._properties
        encryption = EncryptionSupport(props.key_password.get_secret_value())

        self._session_cookie_name = self._context.session_cookie_name or DEFAULT_SESSION_COOKIE_NAME
        self._session_timeout_seconds = self._context.session_timeout_mins * 60
        self._key_prefix = props.key_prefix if props.key_prefix is not None else normalize_key_prefix(
            self._context.name
        )
        self._node_id = props.node_id or generate_node_id(get_host_name(props.server_hostname), self._key_prefix)
        self._ignore_pattern = props.compiled_ignore_pattern()

        self._service = RedisSessionService(
            encryption,
            self._key_prefix,
            redis_url=props.redis_url,
            client=self._client,
            max_connections=props.max_connections,
            pool_timeout_seconds=props.pool_timeout_seconds,
            resolver=self._resolver,
        )

        self._filter = SessionReplicationFilter(self)
        self._context.pipeline.add_filter(self._filter)

        self._eviction_subscriber = SessionEvictionSubscriber(
            self._service.client,
            self._service.eviction_channel,
            self._node_id,
            self,
            poll_seconds=props.subscriber_poll_seconds,
        )
        self._eviction_subscriber.start()
        self._destruction_subscriber = SessionDestructionSubscriber(
            self._service.client,
            self._service.destruction_channel,
            self._node_id,
            self,
            poll_seconds=props.subscriber_poll_seconds,
        )
        self._destruction_subscriber.start()

        if props.expire_check_seconds > 0:
            self._reaper_stop.clear()
            self._reaper = threading.Thread(
                target=self._reap,
                args=(props.expire_check_seconds,),
                name=f"redex-reaper[{self._key_prefix}]",
                daemon=True,
            )
            self._reaper.start()

    def _teardown(self) -> None:
        if self._reaper is not None:
            self._reaper_stop.set()
            if self._reaper is not threading.current_thread():
                self._reaper.join(timeout=5.0)
            self._reaper = None

        for subscriber in (self._destruction_subscriber, self._eviction_subscriber):
            if subscriber is not None:
                try:
                    subscriber.close()
                except Exception:
                    _logger.warning("Error closing subscriber on %s", subscriber.channel, exc_info=True)
        self._destruction_subscriber = None
        self._eviction_subscriber = None

        if self._filter is not None:
            self._context.pipeline.remove_filter(self._filter)
            self._filter = None

        if self._service is not None:
            self._service.close()
            self._service = None

    def _require_service(self) -> RedisSessionService:
        if self._service is None:
            raise LifecycleException(
                f"Session manager is not running (state {self._state.value})",
                code="LIFECYCLE_NOT_RUNNING",
            )
        return self._service

    # ------------------------------------------------------------------
    # Session lookup and creation
    # ------------------------------------------------------------------

    def create_empty_session(self) -> ReplicatedSession:
        return ReplicatedSession(self)

    def create_session(self, session_id: str | None = None) -> ReplicatedSession:
        """Create a new valid session and install it in the local cache."""
        session = self.create_empty_session()
        session.set_new(True)
        session.set_valid(True)
        session.set_creation_time(now_millis())
        session.max_inactive_interval = self._session_timeout_seconds
        session.set_id(session_id or secrets.token_hex(16).upper())
        self.add(session)
        _logger.debug("Created session %s", session.id)
        return session

    def add(self, session: ReplicatedSession) -> None:
        if session.id is None:
            raise ValueError("Cannot cache a session without an id")
        with self._sessions_lock:
            self._sessions[session.id] = session

    def find_local(self, session_id: str | None) -> ReplicatedSession | None:
        """Return the locally cached session, never touching Redis."""
        if not session_id:
            return None
        with self._sessions_lock:
            return self._sessions.get(session_id)

    def find_session(self, session_id: str | None) -> ReplicatedSession | None:
        """Return the session from the local cache, falling back to Redis."""
        if not session_id:
            return None
        session = self.find_local(session_id)
        if session is not None:
            return session

        _logger.debug("Local cache miss for session %s; trying Redis", session_id)
        service = self._require_service()
        session = None
        for _attempt in range(MAX_LOAD_ATTEMPTS):
            with self._sessions_lock:
                self._loads_in_flight[session_id] = self._loads_in_flight.get(session_id, 0) + 1
                evictions = self._evictions_during_load.get(session_id, 0)
            try:
                session_map = service.load_session_map(session_id)
                if session_map is None:
                    _logger.debug("Session %s not found in Redis either", session_id)
                    return None

                session = self.create_empty_session()
                session.load(session_map)
                session.set_attribute(REDEX_NODE_ID, self._node_id)
                session.set_id(session_id)
                with self._sessions_lock:
                    if self._evictions_during_load.get(session_id, 0) == evictions:
                        # A concurrent request may have installed it first.
                        return self._sessions.setdefault(session_id, session)
            finally:
                self._end_load(session_id)
            _logger.debug("Session %s was evicted while loading; reloading", session_id)

        _logger.debug("Session %s kept changing during load; not caching it", session_id)
        return session

    def _end_load(self, session_id: str) -> None:
        with self._sessions_lock:
            remaining = self._loads_in_flight[session_id] - 1
            if remaining:
                self._loads_in_flight[session_id] = remaining
            else:
                del self._loads_in_flight[session_id]
                self._evictions_during_load.pop(session_id, None)

    def find_sessions(self) -> list[ReplicatedSession]:
        with self._sessions_lock:
            return list(self._sessions.values())

    # ------------------------------------------------------------------
    # Request end
    # ------------------------------------------------------------------

    def is_ignored(self, path: str) -> bool:
        return self._ignore_pattern is not None and self._ignore_pattern.fullmatch(path) is not None

    def request_complete(self, request: Request, response: Response | None) -> None:
        """Write the request's session through to Redis and notify peers."""
        path = request.url.path
        if self.is_ignored(path):
            _logger.debug("Request %s matches the ignore pattern; not replicating", path)
            return

        session_id = to_session_id(request, response, self._session_cookie_name)
        session = self.find_local(session_id)
        if session is None or not session.is_valid:
            return

        changeset = build_changeset(
            session,
            node_id=self._require_node_id(),
            ttl_seconds=self._session_timeout_seconds,
            uid=remote_user(request),
        )
        self._require_service().publish_changeset(changeset)
        session.end_access()

    def _require_node_id(self) -> str:
        if self._node_id is None:
            raise LifecycleException("Session manager has not been started", code="LIFECYCLE_NOT_RUNNING")
        return self._node_id

    # ------------------------------------------------------------------
    # Removal, eviction, destruction
    # ------------------------------------------------------------------

    def remove(self, session: ReplicatedSession, update: bool = False) -> None:
        """Drop the session locally, delete it from Redis and broadcast its destruction.

        Inside :meth:`deferring_removals` the store removal is queued instead,
        so request handlers on the event loop never block on Redis.
        """
        if session.id is None:
            return
        self.evict_session(session.id)
        pending = _deferred_removals.get()
        if pending is not None:
            _logger.debug("Deferring store removal of session %s to request end", session.id)
            pending.append(session.id)
            return
        self._require_service().remove_session(self._require_node_id(), session.id)

    @contextlib.contextmanager
    def deferring_removals(self) -> Iterator[list[str]]:
        """Queue store removals requested in this context; yields the queue."""
        pending: list[str] = []
        token = _deferred_removals.set(pending)
        try:
            yield pending
        finally:
            _deferred_removals.reset(token)

    def remove_stored(self, session_ids: Iterable[str]) -> None:
        """Delete queued sessions from Redis and broadcast their destruction."""
        service = self._require_service()
        for session_id in session_ids:
            service.remove_session(self._require_node_id(), session_id)

    def evict_session(self, session_id: str) -> None:
        """Drop a session from the local cache only."""
        _logger.debug("Evicting session %s", session_id)
        with self._sessions_lock:
            self._sessions.pop(session_id, None)
            if session_id in self._loads_in_flight:
                self._evictions_during_load[session_id] = self._evictions_during_load.get(session_id, 0) + 1

    def destroy_session(self, session_id: str) -> None:
        """Expire a locally cached session after a peer destroyed it."""
        session = self.find_local(session_id)
        if session is None:
            self.evict_session(session_id)
            return
        _logger.debug("Destroying session %s", session_id)
        session.expire(True, replicate=False)

    def process_expires(self) -> int:
        """Expire every locally cached session whose idle time exceeded its limit."""
        now_ms = now_millis()
        expired = 0
        for session in self.find_sessions():
            if session.is_valid and session.has_expired(now_ms):
                session.expire(True, replicate=False)
                expired += 1
        if expired:
            _logger.debug("Expired %d idle sessions", expired)
        return expired

    def _reap(self, interval_seconds: float) -> None:
        while not self._reaper_stop.wait(interval_seconds):
            try:
                self.process_expires()
            except Exception:
                _logger.exception("Idle session sweep failed")

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_session_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_session_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def fire_session_destroyed(self, session: ReplicatedSession) -> None:
        for listener in list(self._listeners):
            try:
                listener.session_destroyed(session)
            except Exception:
                _logger.exception("Session listener %r failed for session %s", listener, session.id)

    def __repr__(self) -> str:
        return f"RedisSessionManager(node_id={self._node_id!r}, state={self._state.value})"

    def __enter__(self) -> RedisSessionManager:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self._state is LifecycleState.RUNNING:
            self.stop()

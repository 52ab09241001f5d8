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
"""Pub/sub subscribers that keep the local session cache coherent with peers."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from redis import Redis, RedisError
from redis.client import PubSub

from redex.kernel.exceptions import SubscriberException
from redex.session.messages import SessionMessage
from redex.session.ports.outbound import SessionRemover

_logger = logging.getLogger(__name__)

DEFAULT_POLL_SECONDS = 1.0


class SessionMessageSubscriber:
    """Listens on one channel from a dedicated daemon thread.

    Messages published by ``node_id`` itself are ignored; every other
    message hands its session id to ``callback``. Callbacks run on the
    subscriber thread and must only touch local state.
    """

    def __init__(
        self,
        client: Redis,
        channel: str,
        node_id: str,
        callback: Callable[[str], None],
        *,
        poll_seconds: float = DEFAULT_POLL_SECONDS,
    ) -> None:
        self._client = client
        self._channel = channel
        self._node_id = node_id
        self._callback = callback
        self._poll_seconds = poll_seconds
        self._pubsub: PubSub | None = None
        self._thread: Any = None
        self._lock = threading.Lock()

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                return
            pubsub = self._client.pubsub(ignore_subscribe_messages=True)
            try:
                pubsub.subscribe(**{self._channel: self._on_message})
                thread = pubsub.run_in_thread(
                    sleep_time=self._poll_seconds,
                    daemon=True,
                    exception_handler=self._on_error,
                )
            except RedisError as exc:
                pubsub.close()
                raise SubscriberException(
                    f"Failed to subscribe to {self._channel}",
                    code="SUBSCRIBER_START_FAILED",
                    context={"channel": self._channel},
                ) from exc
            thread.name = f"redex-subscriber[{self._channel}]"
            self._pubsub = pubsub
            self._thread = thread
        _logger.info("Subscribed to %s", self._channel)

    def close(self) -> None:
        """Stop the worker thread; it unsubscribes and closes its connection on exit."""
        with self._lock:
            thread, self._thread = self._thread, None
            self._pubsub = None
        if thread is None:
            return
        thread.stop()
        if thread is not threading.current_thread():
            thread.join(timeout=self._poll_seconds + 5.0)
            if thread.is_alive():
                _logger.warning("Subscriber thread for %s did not stop in time", self._channel)
        _logger.info("Unsubscribed from %s", self._channel)

    def _on_message(self, message: dict[str, Any]) -> None:
        notice = SessionMessage.from_bytes(message["data"])
        if notice.source_node_id == self._node_id:
            _logger.debug("Ignoring own message on %s for session %s", self._channel, notice.session_id)
            return
        self._callback(notice.session_id)

    def _on_error(self, exc: BaseException, pubsub: PubSub, thread: Any) -> None:
        _logger.error("Subscriber on %s failed to handle a message", self._channel, exc_info=exc)


class SessionEvictionSubscriber(SessionMessageSubscriber):
    """Drops locally cached sessions that a peer has rewritten."""

    def __init__(
        self,
        client: Redis,
        channel: str,
        node_id: str,
        remover: SessionRemover,
        *,
        poll_seconds: float = DEFAULT_POLL_SECONDS,
    ) -> None:
        super().__init__(client, channel, node_id, remover.evict_session, poll_seconds=poll_seconds)


class SessionDestructionSubscriber(SessionMessageSubscriber):
    """Destroys locally cached sessions that a peer has invalidated."""

    def __init__(
        self,
        client: Redis,
        channel: str,
        node_id: str,
        remover: SessionRemover,
        *,
        poll_seconds: float = DEFAULT_POLL_SECONDS,
    ) -> None:
        super().__init__(client, channel, node_id, remover.destroy_session, poll_seconds=poll_seconds)

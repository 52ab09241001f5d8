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
"""Redis session store client: the write, remove and read paths."""

from __future__ import annotations

import logging
from typing import Any

from redis import BlockingConnectionPool, Redis, RedisError

from redex.codec.framing import decode_session_map, encode_session_map
from redex.codec.objects import TypeResolver
from redex.crypto.encryption import EncryptionSupport
from redex.kernel.exceptions import StoreException
from redex.session.changeset import SessionChangeset
from redex.session.messages import SessionMessage

_logger = logging.getLogger(__name__)

_KEY_NAMESPACE = "redex"

DEFAULT_MAX_CONNECTIONS = 15
DEFAULT_POOL_TIMEOUT_SECONDS = 5.0


class RedisSessionService:
    """Session store backed by a pooled ``redis.Redis`` client.

    Every session lives in one hash at ``redex:{key_prefix}:{session_id}``
    whose fields are framed by :mod:`redex.codec.framing`. Writes and
    removals are single ``MULTI``/``EXEC`` transactions that also notify
    peers over pub/sub.

    The client must return raw bytes (``decode_responses=False``). A client
    passed in by the caller is not closed by :meth:`close`.
    """

    def __init__(
        self,
        encryption: EncryptionSupport,
        key_prefix: str,
        *,
        redis_url: str = "redis://localhost:6379/0",
        client: Redis | None = None,
        max_connections: int = DEFAULT_MAX_CONNECTIONS,
        pool_timeout_seconds: float = DEFAULT_POOL_TIMEOUT_SECONDS,
        resolver: TypeResolver | None = None,
    ) -> None:
        self._encryption = encryption
        self._key_prefix = key_prefix
        self._resolver = resolver
        if client is None:
            pool = BlockingConnectionPool.from_url(
                redis_url,
                max_connections=max_connections,
                timeout=pool_timeout_seconds,
            )
            self._client = Redis(connection_pool=pool)
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    @property
    def client(self) -> Redis:
        return self._client

    @property
    def key_prefix(self) -> str:
        return self._key_prefix

    @property
    def eviction_channel(self) -> str:
        return f"{_KEY_NAMESPACE}:sessionEviction:{self._key_prefix}"

    @property
    def destruction_channel(self) -> str:
        return f"{_KEY_NAMESPACE}:sessionDestruction:{self._key_prefix}"

    def session_key(self, session_id: str) -> bytes:
        return f"{_KEY_NAMESPACE}:{self._key_prefix}:{session_id}".encode()

    def publish_changeset(self, changeset: SessionChangeset) -> None:
        """Replace the stored record and announce the change to peers.

        One transaction: ``DEL``, ``HSET`` of every framed field, ``EXPIRE``
        (skipped for a non-positive TTL), ``PUBLISH`` of an eviction message.
        """
        fields = encode_session_map(changeset.attributes, self._encryption)
        key = self.session_key(changeset.session_id)
        message = SessionMessage(changeset.node_id, changeset.session_id).to_bytes()

        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.hset(key, mapping=fields)
                if changeset.ttl_seconds > 0:
                    pipe.expire(key, changeset.ttl_seconds)
                pipe.publish(self.eviction_channel, message)
                pipe.execute()
        except RedisError as exc:
            raise StoreException(
                f"Failed to write session {changeset.session_id}",
                code="STORE_WRITE_FAILED",
                context={"session_id": changeset.session_id},
            ) from exc
        _logger.debug("Wrote session %s (%d fields, ttl=%ss)", changeset.session_id, len(fields), changeset.ttl_seconds)

    def remove_session(self, node_id: str, session_id: str) -> None:
        """Delete the stored record and tell peers to destroy their copies."""
        message = SessionMessage(node_id, session_id).to_bytes()
        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(self.session_key(session_id))
                pipe.publish(self.destruction_channel, message)
                pipe.execute()
        except RedisError as exc:
            raise StoreException(
                f"Failed to remove session {session_id}",
                code="STORE_REMOVE_FAILED",
                context={"session_id": session_id},
            ) from exc
        _logger.debug("Removed session %s", session_id)

    def load_session_map(self, session_id: str) -> dict[str, Any] | None:
        """Read and decode a stored record, or return ``None`` on a miss.

        Codec and crypto failures propagate; a corrupt field fails the whole
        record.
        """
        key = self.session_key(session_id)
        try:
            if not self._client.exists(key):
                return None
            encoded = self._client.hgetall(key)
        except RedisError as exc:
            raise StoreException(
                f"Failed to read session {session_id}",
                code="STORE_READ_FAILED",
                context={"session_id": session_id},
            ) from exc

        # The key can expire between EXISTS and HGETALL.
        if not encoded:
            return None
        _logger.debug("Loaded session %s (%d fields)", session_id, len(encoded))
        return decode_session_map(encoded, self._encryption, self._resolver)

    def close(self) -> None:
        """Release the connection pool if this service created it."""
        if not self._owns_client:
            return
        try:
            self._client.close()
            self._client.connection_pool.disconnect()
        except RedisError:
            _logger.warning("Error while closing the session store client", exc_info=True)

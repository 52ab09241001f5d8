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
"""Unified exception hierarchy for redex.

All exceptions raised by the replication core inherit from RedexException,
so a request-end hook or an application can catch one type for every
failure the core surfaces.

Categories:
- ConfigurationException: fatal at startup (missing password, bad regex)
- LifecycleException: illegal manager state transitions, start/stop failures
- CodecException: corrupt or unsupported session field encodings
- CryptoException: authenticated-encryption failures
- InfrastructureException: store and pub/sub failures
"""

from __future__ import annotations


# =============================================================================
# Base Exception
# =============================================================================


class RedexException(Exception):
    """Base exception for all redex errors.

    Carries an optional error code and context dict for structured error data.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "CODEC_001").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Startup and Lifecycle Exceptions
# =============================================================================


class ConfigurationException(RedexException):
    """Invalid or missing configuration. Fatal at startup."""


class LifecycleException(RedexException):
    """A lifecycle transition was illegal or failed."""


class InvalidSessionException(RedexException):
    """The operation is not allowed on an invalidated session."""


# =============================================================================
# Per-operation Exceptions
# =============================================================================


class CodecException(RedexException):
    """A session field could not be encoded or decoded.

    The stored record is considered corrupt when raised on the read path.
    """


class CryptoException(RedexException):
    """Encryption or decryption failed (bad key, tampered ciphertext)."""


# =============================================================================
# Infrastructure Exceptions
# =============================================================================


class InfrastructureException(RedexException):
    """Infrastructure failures: store connections, transactions, pub/sub."""


class StoreException(InfrastructureException):
    """A command against the shared store failed or timed out."""


class SubscriberException(InfrastructureException):
    """A pub/sub subscriber could not be started."""

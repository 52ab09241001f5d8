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
"""Unified lifecycle protocol for components that own connections or threads.

Analogous to a container's Lifecycle interface. The manager calls start()
during context startup and stop() during shutdown, in registration order
and reverse order respectively.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable


class LifecycleState(Enum):
    """Observable states of a lifecycle-managed component."""

    STOPPED = "STOPPED"
    STARTING = "STARTING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"


@runtime_checkable
class Lifecycle(Protocol):
    """Standard lifecycle for components owning external resources.

    Components that own connection pools or background threads implement
    this protocol. start() must raise if the resource cannot be acquired;
    stop() is best-effort and logs rather than raises on cleanup failures.
    """

    def start(self) -> None:
        """Acquire resources and begin background work."""
        ...

    def stop(self) -> None:
        """Release resources and stop background work."""
        ...

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
"""redex session — replicated session model, changesets and peer messages.

Import the manager from its module::

    from redex.session.manager import RedisSessionManager
"""

from redex.session.changeset import SessionChangeset, build_changeset
from redex.session.messages import SessionMessage
from redex.session.ports.outbound import Pipeline, SessionContext, SessionListener, SessionRemover
from redex.session.session import ReplicatedSession

__all__ = [
    "Pipeline",
    "ReplicatedSession",
    "SessionChangeset",
    "SessionContext",
    "SessionListener",
    "SessionMessage",
    "SessionRemover",
    "build_changeset",
]

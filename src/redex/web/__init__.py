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
"""redex web — request pipeline, request-end hook and request helpers.

Import the application factory from its module::

    from redex.web.app import create_app
"""

from redex.web.context import WebSessionContext
from redex.web.filters import OncePerRequestFilter
from redex.web.pipeline import FilterPipeline, FilterPipelineMiddleware
from redex.web.ports.filter import CallNext, WebFilter
from redex.web.replication_filter import SessionReplicationFilter
from redex.web.request_support import get_session, remote_user, to_session_id

__all__ = [
    "CallNext",
    "FilterPipeline",
    "FilterPipelineMiddleware",
    "OncePerRequestFilter",
    "SessionReplicationFilter",
    "WebFilter",
    "WebSessionContext",
    "get_session",
    "remote_user",
    "to_session_id",
]

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
"""WebSessionContext — the hosting web context seen by the session manager."""

from __future__ import annotations

from dataclasses import dataclass, field

from redex.config.properties.context import ContextProperties
from redex.web.pipeline import FilterPipeline


@dataclass
class WebSessionContext:
    """Context path, session timeout, cookie name and request pipeline of one application."""

    name: str = "/"
    session_timeout_mins: int = 30
    session_cookie_name: str | None = None
    pipeline: FilterPipeline = field(default_factory=FilterPipeline)

    @classmethod
    def from_properties(
        cls,
        properties: ContextProperties,
        pipeline: FilterPipeline | None = None,
    ) -> WebSessionContext:
        return cls(
            name=properties.name,
            session_timeout_mins=properties.session_timeout_mins,
            session_cookie_name=properties.session_cookie_name,
            pipeline=pipeline if pipeline is not None else FilterPipeline(),
        )

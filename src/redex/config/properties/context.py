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
"""Web context configuration properties."""

from __future__ import annotations

from dataclasses import dataclass

from redex.core.config import config_properties


@config_properties(prefix="redex.context")
@dataclass
class ContextProperties:
    """Configuration for the hosting web context (redex.context.*).

    ``name`` is the context path; it seeds the default key prefix.
    """

    name: str = "/"
    session_timeout_mins: int = 30
    session_cookie_name: str | None = None

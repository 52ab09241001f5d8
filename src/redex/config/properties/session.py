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
"""Session replication configuration properties."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic.alias_generators import to_camel

from redex.core.config import config_properties


@config_properties(prefix="redex.session")
class SessionReplicationProperties(BaseModel):
    """Configuration for the replicated session manager (redex.session.*).

    Keys may be written in snake_case or camelCase (``keyPassword``).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    redis_url: str = "redis://localhost:6379/0"
    key_password: SecretStr
    key_prefix: str | None = None
    node_id: str | None = None
    ignore_pattern: str | None = None
    server_hostname: str | None = None
    max_connections: int = Field(default=15, ge=2)
    pool_timeout_seconds: float = Field(default=5.0, gt=0)
    subscriber_poll_seconds: float = Field(default=1.0, gt=0)
    expire_check_seconds: float = Field(default=60.0, ge=0)

    @field_validator("key_password")
    @classmethod
    def _password_not_blank(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("an encryption key password must be set")
        return value

    @field_validator("ignore_pattern")
    @classmethod
    def _pattern_compiles(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"invalid ignore pattern {value!r}: {exc}") from exc
        return value

    def compiled_ignore_pattern(self) -> re.Pattern[str] | None:
        """Return the compiled ignore pattern, or ``None`` when unset."""
        return re.compile(self.ignore_pattern) if self.ignore_pattern is not None else None

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
"""Node identity: key prefix normalization, hostname discovery and node ids."""

from __future__ import annotations

import logging
import socket
import subprocess
import uuid

_logger = logging.getLogger(__name__)

_HOSTNAME_TIMEOUT_SECONDS = 5


def normalize_key_prefix(context_name: str) -> str:
    """Turn a context path into a key prefix: ``/shop/v2`` -> ``shop:v2``."""
    return context_name.replace("/", "", 1).replace("/", ":")


def get_host_name(override: str | None = None) -> str:
    """Return the host name used in node ids.

    An explicit *override* wins; otherwise the ``hostname`` command is run,
    falling back to the resolver's fully qualified name for this host.
    """
    if override:
        return override
    try:
        result = subprocess.run(
            ["hostname"],
            capture_output=True,
            check=True,
            text=True,
            timeout=_HOSTNAME_TIMEOUT_SECONDS,
        )
        host = result.stdout.strip()
        if host:
            return host
    except (OSError, subprocess.SubprocessError) as exc:
        _logger.debug("hostname command failed, falling back to DNS: %s", exc)
    return socket.getfqdn()


def generate_node_id(host_name: str, key_prefix: str) -> str:
    """Build a fleet-unique node id: ``{host}:{key_prefix}:{uuid}``."""
    return f"{host_name}:{key_prefix}:{uuid.uuid4()}"

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
"""Opaque object serialization with pluggable type resolution.

Values that are not primitives are written with :mod:`pickle`. Reading
them back resolves every global the stream references through a
:class:`TypeResolver`, which lets the host decide which types a node may
materialise from the store.
"""

from __future__ import annotations

import importlib
import io
import pickle
import struct
from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

from redex.kernel.exceptions import CodecException

# Pinned so nodes on different interpreter versions can read each other.
PICKLE_PROTOCOL = 4


@runtime_checkable
class TypeResolver(Protocol):
    """Resolves a ``(module, qualified name)`` pair to a Python object."""

    def resolve(self, module: str, name: str) -> Any: ...


class DefaultTypeResolver:
    """Imports the module and walks the dotted name, like pickle itself."""

    def resolve(self, module: str, name: str) -> Any:
        try:
            target: Any = importlib.import_module(module)
            for part in name.split("."):
                target = getattr(target, part)
        except (ImportError, AttributeError) as exc:
            raise CodecException(
                f"Cannot resolve type {module}.{name}: {exc}",
                code="CODEC_UNRESOLVED_TYPE",
            ) from exc
        return target


class RegistryTypeResolver:
    """Resolves only explicitly registered types.

    Args:
        types: Classes (or other module-level objects) that may be loaded.
        fallback: Resolver consulted for names that are not registered.
            Without one, unregistered names are rejected.
    """

    def __init__(self, types: Iterable[Any] = (), fallback: TypeResolver | None = None) -> None:
        self._registry: dict[tuple[str, str], Any] = {}
        self._fallback = fallback
        for item in types:
            self.register(item)

    def register(self, item: Any) -> None:
        """Allow *item* to be resolved by its module and qualified name."""
        self._registry[(item.__module__, item.__qualname__)] = item

    def resolve(self, module: str, name: str) -> Any:
        found = self._registry.get((module, name))
        if found is not None:
            return found
        if self._fallback is not None:
            return self._fallback.resolve(module, name)
        raise CodecException(
            f"Type {module}.{name} is not registered for deserialization",
            code="CODEC_UNREGISTERED_TYPE",
        )


class _ResolvingUnpickler(pickle.Unpickler):
    def __init__(self, data: bytes, resolver: TypeResolver) -> None:
        super().__init__(io.BytesIO(data))
        self._resolver = resolver

    def find_class(self, module: str, name: str) -> Any:
        return self._resolver.resolve(module, name)


def dump_object(value: Any) -> bytes:
    """Serialize *value* to bytes."""
    try:
        return pickle.dumps(value, protocol=PICKLE_PROTOCOL)
    except (pickle.PicklingError, TypeError, AttributeError) as exc:
        raise CodecException(
            f"Cannot serialize value of type {type(value).__name__}: {exc}",
            code="CODEC_UNSERIALIZABLE",
        ) from exc


def load_object(data: bytes, resolver: TypeResolver | None = None) -> Any:
    """Deserialize bytes written by :func:`dump_object`.

    Raises:
        CodecException: If the stream is corrupt or references a type the
            resolver refuses.
    """
    unpickler = _ResolvingUnpickler(data, resolver or DefaultTypeResolver())
    try:
        value = unpickler.load()
    except CodecException:
        raise
    except (
        pickle.UnpicklingError,
        EOFError,
        ValueError,
        TypeError,
        IndexError,
        KeyError,
        AttributeError,
        struct.error,
    ) as exc:
        raise CodecException(f"Corrupt object stream: {exc}", code="CODEC_CORRUPT_OBJECT") from exc
    return value

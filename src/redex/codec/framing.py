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
"""Attribute framing: the ``VV:CC:key`` field names of a stored session hash.

``VV`` is the value-encoding header: ``d`` plus a data tag for primitives and
strings, ``so`` for opaque objects. ``CC`` is the confidentiality header:
``pt`` for bytes stored as written, ``ct`` for bytes encrypted with
:class:`~redex.crypto.encryption.EncryptionSupport`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from redex.codec.objects import TypeResolver, dump_object, load_object
from redex.codec.values import DATA_TAGS, decode_value, encode_value, is_data_value
from redex.crypto.encryption import EncryptionSupport
from redex.kernel.exceptions import CodecException

REDEX_SESSION_ID = "redex:sessionId"
REDEX_NODE_ID = "redex:nodeId"
REDEX_UID = "redex:uid"
REDEX_AUTHTYPE_ATTR = "redex:session:authtype"
REDEX_CREATION_TIME_ATTR = "redex:session:creationTime"
REDEX_IS_NEW_ATTR = "redex:session:isNew"
REDEX_IS_VALID_ATTR = "redex:session:isValid"
REDEX_LAST_ACCESSED_TIME_ATTR = "redex:session:lastAccessedTime"
REDEX_MAX_INACTIVE_INTERVAL_ATTR = "redex:session:maxInactiveInterval"
REDEX_PRINCIPAL_ATTR = "redex:session:principal"
REDEX_THIS_ACCESSED_TIME_ATTR = "redex:session:thisAccessedTime"

# Routing metadata an operator must be able to read straight from the store.
PLAINTEXT_ATTRIBUTES = frozenset(
    {
        REDEX_SESSION_ID,
        REDEX_NODE_ID,
        REDEX_UID,
        REDEX_AUTHTYPE_ATTR,
        REDEX_CREATION_TIME_ATTR,
        REDEX_IS_NEW_ATTR,
        REDEX_IS_VALID_ATTR,
        REDEX_LAST_ACCESSED_TIME_ATTR,
        REDEX_MAX_INACTIVE_INTERVAL_ATTR,
        REDEX_THIS_ACCESSED_TIME_ATTR,
    }
)

SERIALIZED = "s"
DATA = "d"
OBJECT_TAG = "o"
PLAINTEXT = "pt"
CIPHERTEXT = "ct"

_HEADER_LENGTH = 6


@dataclass(frozen=True)
class FieldHeader:
    """Parsed form of a stored field name."""

    encoding: str
    tag: str
    confidentiality: str
    key: str

    @property
    def encrypted(self) -> bool:
        return self.confidentiality == CIPHERTEXT

    def to_field_name(self) -> str:
        return f"{self.encoding}{self.tag}:{self.confidentiality}:{self.key}"

    @classmethod
    def parse(cls, field_name: str) -> FieldHeader:
        """Parse ``VV:CC:key``, rejecting any unknown header byte."""
        if len(field_name) < _HEADER_LENGTH or field_name[2] != ":" or field_name[5] != ":":
            raise CodecException(f"Malformed field header: {field_name!r}", code="CODEC_BAD_HEADER")

        encoding, tag = field_name[0], field_name[1]
        if encoding == SERIALIZED:
            if tag != OBJECT_TAG:
                raise CodecException(f"Unknown object encoding tag: {field_name!r}", code="CODEC_BAD_HEADER")
        elif encoding == DATA:
            if tag not in DATA_TAGS:
                raise CodecException(f"Unknown data type tag: {field_name!r}", code="CODEC_BAD_HEADER")
        else:
            raise CodecException(f"Unknown value encoding header: {field_name!r}", code="CODEC_BAD_HEADER")

        confidentiality = field_name[3:5]
        if confidentiality not in (PLAINTEXT, CIPHERTEXT):
            raise CodecException(f"Unknown confidentiality header: {field_name!r}", code="CODEC_BAD_HEADER")

        return cls(encoding, tag, confidentiality, field_name[_HEADER_LENGTH:])


def encode_attribute(key: str, value: Any, encryption: EncryptionSupport) -> tuple[bytes, bytes]:
    """Frame one attribute, returning the UTF-8 field name and the stored bytes.

    Primitives, strings and members of :data:`PLAINTEXT_ATTRIBUTES` are stored
    in plaintext; every other value is serialized and encrypted.
    """
    data_value = is_data_value(value)
    if data_value:
        tag, payload = encode_value(value)
        encoding = DATA
    else:
        tag, payload = OBJECT_TAG, dump_object(value)
        encoding = SERIALIZED

    if data_value or key in PLAINTEXT_ATTRIBUTES:
        confidentiality = PLAINTEXT
    else:
        confidentiality = CIPHERTEXT
        payload = encryption.encrypt(payload)

    header = FieldHeader(encoding, tag, confidentiality, key)
    return header.to_field_name().encode("utf-8"), payload


def decode_attribute(
    field_name: bytes | str,
    payload: bytes,
    encryption: EncryptionSupport,
    resolver: TypeResolver | None = None,
) -> tuple[str, Any]:
    """Reverse :func:`encode_attribute`, returning the attribute name and value."""
    if isinstance(field_name, bytes):
        try:
            field_name = field_name.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CodecException(f"Field name is not UTF-8: {field_name!r}", code="CODEC_BAD_HEADER") from exc

    header = FieldHeader.parse(field_name)
    if header.encrypted:
        payload = encryption.decrypt(payload)

    if header.encoding == DATA:
        return header.key, decode_value(header.tag, payload)
    return header.key, load_object(payload, resolver)


def encode_session_map(attributes: Mapping[str, Any], encryption: EncryptionSupport) -> dict[bytes, bytes]:
    """Frame every attribute of a changeset for a multi-field hash set."""
    encoded: dict[bytes, bytes] = {}
    for key, value in attributes.items():
        field_name, payload = encode_attribute(key, value, encryption)
        encoded[field_name] = payload
    return encoded


def decode_session_map(
    encoded: Mapping[bytes, bytes],
    encryption: EncryptionSupport,
    resolver: TypeResolver | None = None,
) -> dict[str, Any]:
    """Decode a full stored hash. Any bad field fails the whole record."""
    session_map: dict[str, Any] = {}
    for field_name, payload in encoded.items():
        key, value = decode_attribute(field_name, payload, encryption, resolver)
        session_map[key] = value
    return session_map

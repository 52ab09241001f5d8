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
"""redex codec — typed values, opaque objects and attribute framing."""

from redex.codec.framing import (
    PLAINTEXT_ATTRIBUTES,
    FieldHeader,
    decode_attribute,
    decode_session_map,
    encode_attribute,
    encode_session_map,
)
from redex.codec.objects import DefaultTypeResolver, RegistryTypeResolver, TypeResolver
from redex.codec.values import Char, Float32, Int8, Int16, Int32, Int64, decode_value, encode_value

__all__ = [
    "PLAINTEXT_ATTRIBUTES",
    "Char",
    "DefaultTypeResolver",
    "FieldHeader",
    "Float32",
    "Int16",
    "Int32",
    "Int64",
    "Int8",
    "RegistryTypeResolver",
    "TypeResolver",
    "decode_attribute",
    "decode_session_map",
    "decode_value",
    "encode_attribute",
    "encode_session_map",
    "encode_value",
]

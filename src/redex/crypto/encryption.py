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
"""AES-GCM authenticated encryption with a password-derived key.

Wire layout of every ciphertext: ``IV (12 bytes) || ciphertext || tag (16 bytes)``.
The key is derived once per instance with PBKDF2-HMAC-SHA256 over a salt
shared by every node of a fleet, so all nodes configured with the same
password can read each other's records.
"""

from __future__ import annotations

import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from redex.kernel.exceptions import ConfigurationException, CryptoException

_logger = logging.getLogger(__name__)

# Fleet-wide constant; changing it makes existing records unreadable.
KEYGEN_SALT = bytes.fromhex("5d38d3172e6296ca005ec6b6fae9c90afd4d176c4c0b8bb8cee73ccf3c330d30")
KEYGEN_ITERATIONS = 64 * 1024
AES_KEY_LENGTH = 16
AES_GCM_IV_LENGTH = 12
AES_GCM_TAG_LENGTH = 16


def derive_key(password: str, salt: bytes = KEYGEN_SALT) -> bytes:
    """Derive a 128-bit AES key from *password* with PBKDF2-HMAC-SHA256."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=AES_KEY_LENGTH,
        salt=salt,
        iterations=KEYGEN_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


class EncryptionSupport:
    """Encrypts and decrypts session field values.

    Args:
        key_password: Password the AES key is derived from. Required.

    Raises:
        ConfigurationException: If no password is supplied.
    """

    def __init__(self, key_password: str | None) -> None:
        if not key_password:
            raise ConfigurationException(
                "An encryption key password was not set",
                code="CRYPTO_NO_PASSWORD",
            )
        self._aesgcm = AESGCM(derive_key(key_password))
        _logger.debug("Derived AES-%d session key", AES_KEY_LENGTH * 8)

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt *plaintext* under a fresh random IV and prepend the IV."""
        iv = os.urandom(AES_GCM_IV_LENGTH)
        try:
            return iv + self._aesgcm.encrypt(iv, plaintext, None)
        except (OverflowError, ValueError) as exc:
            raise CryptoException(f"Encryption failed: {exc}", code="CRYPTO_ENCRYPT") from exc

    def decrypt(self, message: bytes) -> bytes:
        """Split off the IV, verify the tag and return the plaintext.

        Raises:
            CryptoException: If the message is truncated or fails authentication.
        """
        if len(message) < AES_GCM_IV_LENGTH + AES_GCM_TAG_LENGTH:
            raise CryptoException(
                f"Ciphertext too short: {len(message)} bytes",
                code="CRYPTO_TRUNCATED",
            )
        iv, body = message[:AES_GCM_IV_LENGTH], message[AES_GCM_IV_LENGTH:]
        try:
            return self._aesgcm.decrypt(iv, body, None)
        except InvalidTag as exc:
            raise CryptoException(
                "Ciphertext failed authentication (wrong key or tampered data)",
                code="CRYPTO_AUTH",
            ) from exc

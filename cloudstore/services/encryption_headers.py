"""Request headers for customer-supplied encryption keys.

The copy-source variants decrypt the object being read; the plain variants
encrypt (or, on reads, decrypt) the object being addressed by the request.
"""

from __future__ import annotations

import base64
import hashlib
from typing import Dict
from typing import Optional

from cloudstore.errors import EncryptionKeyError


ENCRYPTION_ALGORITHM = "AES256"
ENCRYPTION_KEY_LENGTH = 32

HEADER_ALGORITHM = "x-goog-encryption-algorithm"
HEADER_KEY = "x-goog-encryption-key"
HEADER_KEY_SHA256 = "x-goog-encryption-key-sha256"
HEADER_COPY_SOURCE_ALGORITHM = "x-goog-copy-source-encryption-algorithm"
HEADER_COPY_SOURCE_KEY = "x-goog-copy-source-encryption-key"
HEADER_COPY_SOURCE_KEY_SHA256 = "x-goog-copy-source-encryption-key-sha256"


def _validate_key(key: bytes) -> bytes:
    if not isinstance(key, (bytes, bytearray)):
        raise EncryptionKeyError(f"Encryption key must be bytes, got {type(key).__name__}")
    if len(key) != ENCRYPTION_KEY_LENGTH:
        raise EncryptionKeyError(f"Encryption key must be {ENCRYPTION_KEY_LENGTH} bytes, got {len(key)}")
    return bytes(key)


def _encoded_pair(key: bytes) -> tuple[str, str]:
    key = _validate_key(key)
    return (
        base64.b64encode(key).decode("ascii"),
        base64.b64encode(hashlib.sha256(key).digest()).decode("ascii"),
    )


def key_headers(key: bytes) -> Dict[str, str]:
    encoded_key, encoded_sha256 = _encoded_pair(key)
    return {
        HEADER_ALGORITHM: ENCRYPTION_ALGORITHM,
        HEADER_KEY: encoded_key,
        HEADER_KEY_SHA256: encoded_sha256,
    }


def copy_source_key_headers(key: bytes) -> Dict[str, str]:
    encoded_key, encoded_sha256 = _encoded_pair(key)
    return {
        HEADER_COPY_SOURCE_ALGORITHM: ENCRYPTION_ALGORITHM,
        HEADER_COPY_SOURCE_KEY: encoded_key,
        HEADER_COPY_SOURCE_KEY_SHA256: encoded_sha256,
    }


def encryption_key_headers(
    source_key: Optional[bytes] = None,
    destination_key: Optional[bytes] = None,
) -> Dict[str, str]:
    """Build the header set for a rewrite from up to two customer-supplied keys.

    Args:
        source_key: Key the source object is currently encrypted with
        destination_key: Key the written object should be encrypted with;
            absent means service-managed encryption

    Returns:
        Header mapping, empty when neither key is given
    """
    headers: Dict[str, str] = {}
    if source_key is not None:
        headers.update(copy_source_key_headers(source_key))
    if destination_key is not None:
        headers.update(key_headers(destination_key))
    return headers


def request_options(headers: Dict[str, str]) -> Dict[str, Dict[str, str]]:
    """Wrap headers in the service options mapping; no headers means no option."""
    if not headers:
        return {}
    return {"header": dict(headers)}

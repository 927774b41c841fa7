import base64
import hashlib

import pytest

from cloudstore.errors import EncryptionKeyError
from cloudstore.services.encryption_headers import copy_source_key_headers
from cloudstore.services.encryption_headers import encryption_key_headers
from cloudstore.services.encryption_headers import key_headers
from cloudstore.services.encryption_headers import request_options


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def test_key_headers(encryption_key):
    assert key_headers(encryption_key) == {
        "x-goog-encryption-algorithm": "AES256",
        "x-goog-encryption-key": _b64(encryption_key),
        "x-goog-encryption-key-sha256": _b64(hashlib.sha256(encryption_key).digest()),
    }


def test_copy_source_key_headers(source_encryption_key):
    assert copy_source_key_headers(source_encryption_key) == {
        "x-goog-copy-source-encryption-algorithm": "AES256",
        "x-goog-copy-source-encryption-key": _b64(source_encryption_key),
        "x-goog-copy-source-encryption-key-sha256": _b64(hashlib.sha256(source_encryption_key).digest()),
    }


def test_key_sha256_matches_known_digest(encryption_key):
    expected_sha256 = b"5\x04_\xdf\x1d\x8a_d\xfeK\x1b6p[XZz\x13s]E\xf6\xbb\x10aQH\xf6o\x14f\xf9"

    headers = key_headers(encryption_key)

    assert headers["x-goog-encryption-key-sha256"] == _b64(expected_sha256)


def test_both_keys_yield_six_headers(encryption_key, source_encryption_key):
    headers = encryption_key_headers(source_encryption_key, encryption_key)

    assert len(headers) == 6
    assert headers == {**copy_source_key_headers(source_encryption_key), **key_headers(encryption_key)}


def test_destination_key_only(encryption_key):
    headers = encryption_key_headers(destination_key=encryption_key)

    assert headers == key_headers(encryption_key)
    assert not any(name.startswith("x-goog-copy-source") for name in headers)


def test_source_key_only(source_encryption_key):
    headers = encryption_key_headers(source_key=source_encryption_key)

    assert headers == copy_source_key_headers(source_encryption_key)
    assert len(headers) == 3


def test_no_keys_yield_empty_mapping():
    assert encryption_key_headers() == {}
    assert encryption_key_headers(None, None) == {}


def test_values_are_padded_standard_base64(encryption_key):
    headers = key_headers(encryption_key)

    # 32 raw bytes encode to 44 characters with one pad character
    assert len(headers["x-goog-encryption-key"]) == 44
    assert headers["x-goog-encryption-key"].endswith("=")
    assert base64.b64decode(headers["x-goog-encryption-key"], validate=True) == encryption_key


def test_short_key_rejected():
    with pytest.raises(EncryptionKeyError):
        key_headers(b"too-short")


def test_text_key_rejected():
    with pytest.raises(EncryptionKeyError) as exc_info:
        encryption_key_headers(source_key="a" * 32)  # type: ignore[arg-type]
    assert isinstance(exc_info.value, ValueError)


def test_request_options_wraps_headers(encryption_key):
    headers = key_headers(encryption_key)

    assert request_options(headers) == {"header": headers}


def test_request_options_empty():
    assert request_options({}) == {}

import os
from typing import Any
from typing import Generator
from unittest.mock import Mock

import pytest

from cloudstore.config import Config
from cloudstore.file import File
from tests.unit.mocks.mock_storage_service import random_file_hash


ENCRYPTION_KEY = b"y\x03\"\x0e\xb6\xd3\x9b\x0e\xab*\x19\xfav\xdeY\xbeI\xf8ftA|[z\x1a\xfbE\xde\x97&\xbc\xc7"
SOURCE_ENCRYPTION_KEY = b"T\x80\xc2}\x91R\xd2\x05\x0cTo\xd4\xb3+\xae\xbcbd\xd1\x81|\xcd\x06%\xc8|\xa2\x17\xf6\xb4^\xd0"


@pytest.fixture(scope="session", autouse=True)
def _pin_test_env() -> Generator[None, None, None]:
    """Keep developer .env files from leaking into the unit tests."""
    saved = {key: value for key, value in os.environ.items() if key.startswith("CLOUDSTORE_")}
    for key in saved:
        del os.environ[key]
    os.environ["ENVIRONMENT"] = "test"
    yield
    os.environ.update(saved)


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def service() -> Mock:
    return Mock()


@pytest.fixture
def file_hash() -> dict[str, Any]:
    return random_file_hash("bucket", "file.ext")


@pytest.fixture
def file(file_hash: dict[str, Any], service: Mock, config: Config) -> File:
    return File.from_metadata(file_hash, service, config)


@pytest.fixture
def encryption_key() -> bytes:
    return ENCRYPTION_KEY


@pytest.fixture
def source_encryption_key() -> bytes:
    return SOURCE_ENCRYPTION_KEY

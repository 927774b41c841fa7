"""Client-side model of stored objects: metadata, delete, verified download, copy and key rotation."""

import logging

from cloudstore.config import Config
from cloudstore.config import get_config
from cloudstore.errors import AuthenticationError
from cloudstore.errors import EncryptionKeyError
from cloudstore.errors import FileVerificationError
from cloudstore.errors import NotFoundError
from cloudstore.errors import RewriteIncompleteError
from cloudstore.errors import StorageError
from cloudstore.errors import TransportError
from cloudstore.file import File
from cloudstore.logging_config import setup_logging
from cloudstore.models.object import ObjectResource
from cloudstore.models.object import ObjectUpdate
from cloudstore.services.json_api_service import JsonApiStorageService
from cloudstore.services.verifier import VerifyMode


logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AuthenticationError",
    "Config",
    "EncryptionKeyError",
    "File",
    "FileVerificationError",
    "JsonApiStorageService",
    "NotFoundError",
    "ObjectResource",
    "ObjectUpdate",
    "RewriteIncompleteError",
    "StorageError",
    "TransportError",
    "VerifyMode",
    "get_config",
    "setup_logging",
]

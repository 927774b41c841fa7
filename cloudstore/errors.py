"""Error types raised by the cloudstore client."""

from __future__ import annotations

from typing import Any


class StorageError(Exception):
    """Base exception for all cloudstore errors."""


class TransportError(StorageError):
    """Raised by the service when a request fails on the network, auth or quota level."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(TransportError):
    """Raised when the service rejects the request credentials (401/403)."""


class NotFoundError(StorageError):
    """Raised when the bucket or object does not exist."""

    def __init__(self, message: str, status_code: int = 404):
        self.status_code = status_code
        super().__init__(message)


class FileVerificationError(StorageError):
    """Raised when a downloaded payload does not match the stored digest.

    The bytes have already been written when this is raised: ``destination``
    holds the downloaded but untrusted content.
    """

    def __init__(self, kind: str, expected: str, actual: str, destination: Any = None):
        self.kind = kind
        self.expected = expected
        self.actual = actual
        self.destination = destination
        super().__init__(f"The downloaded file failed {kind} verification: expected {expected}, got {actual}")


class RewriteIncompleteError(StorageError):
    """Raised when a rewrite does not finish within its iteration or time budget."""

    def __init__(self, message: str, iterations: int, rewrite_token: str | None):
        self.iterations = iterations
        self.rewrite_token = rewrite_token
        super().__init__(message)


class EncryptionKeyError(StorageError, ValueError):
    """Raised for customer-supplied keys that are not 32 raw bytes."""

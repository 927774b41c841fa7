"""Integrity checks for downloaded payloads."""

from __future__ import annotations

import base64
import binascii
import contextlib
import hashlib
import logging
import os
from enum import Enum
from typing import IO
from typing import Any
from typing import Iterator
from typing import Union

import google_crc32c

from cloudstore.errors import FileVerificationError


logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024

LocalFile = Union[str, "os.PathLike[str]", IO[bytes]]


class VerifyMode(str, Enum):
    MD5 = "md5"
    CRC32C = "crc32c"
    ALL = "all"
    NONE = "none"


@contextlib.contextmanager
def _readable(local_file: LocalFile) -> Iterator[IO[bytes]]:
    """Yield a binary reader positioned at the start of the payload.

    Paths and file objects backed by a real file are re-opened by path, so a
    destination opened write-only can still be checked. Other streams are read
    from offset 0 and left at the position they had before.
    """
    if isinstance(local_file, (str, os.PathLike)):
        with open(local_file, "rb") as fp:
            yield fp
        return

    name = getattr(local_file, "name", None)
    if isinstance(name, str) and os.path.isfile(name):
        local_file.flush()
        with open(name, "rb") as fp:
            yield fp
        return

    position = local_file.tell()
    local_file.seek(0)
    try:
        yield local_file
    finally:
        local_file.seek(position)


def can_read_back(stream: Any) -> bool:
    """Whether the bytes written to ``stream`` can be read again for hashing."""
    name = getattr(stream, "name", None)
    if isinstance(name, str) and os.path.isfile(name):
        return True
    try:
        return bool(stream.seekable() and stream.readable())
    except (AttributeError, ValueError):
        return False


class DigestingWriter:
    """Write-through wrapper that hashes every chunk on its way to ``stream``.

    Used for destinations that cannot be re-read (pipes, sockets, write-only
    sinks); the verifier compares the running digests instead.
    """

    def __init__(self, stream: Any):
        self.stream = stream
        self._md5 = hashlib.md5()
        self._crc32c = google_crc32c.Checksum()
        self.bytes_written = 0

    def write(self, data: bytes) -> int:
        self._md5.update(data)
        self._crc32c.update(data)
        self.bytes_written += len(data)
        written = self.stream.write(data)
        return len(data) if written is None else written

    def md5(self) -> str:
        return base64.b64encode(self._md5.digest()).decode("ascii")

    def crc32c(self) -> str:
        return base64.b64encode(self._crc32c.digest()).decode("ascii")


def _iter_chunks(fp: IO[bytes]) -> Iterator[bytes]:
    while True:
        chunk = fp.read(_CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


def _digest_bytes(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return value.encode("utf-8")


def digests_match(expected: str, actual: str) -> bool:
    """Compare two base64 digests on their decoded bytes."""
    return _digest_bytes(expected) == _digest_bytes(actual)


class Verifier:
    @staticmethod
    def md5_for(local_file: Union[LocalFile, DigestingWriter]) -> str:
        if isinstance(local_file, DigestingWriter):
            return local_file.md5()
        md5 = hashlib.md5()
        with _readable(local_file) as fp:
            for chunk in _iter_chunks(fp):
                md5.update(chunk)
        return base64.b64encode(md5.digest()).decode("ascii")

    @staticmethod
    def crc32c_for(local_file: Union[LocalFile, DigestingWriter]) -> str:
        if isinstance(local_file, DigestingWriter):
            return local_file.crc32c()
        checksum = google_crc32c.Checksum()
        with _readable(local_file) as fp:
            for chunk in _iter_chunks(fp):
                checksum.update(chunk)
        return base64.b64encode(checksum.digest()).decode("ascii")

    @classmethod
    def verify(cls, mode: Union[VerifyMode, str], remote_file: Any, local_file: Any) -> None:
        """Check ``local_file`` against the digests stored on ``remote_file``.

        Under ``all`` both digests are computed before anything is raised; the
        md5 mismatch is reported first when both fail.

        Raises:
            FileVerificationError: a computed digest differs from the stored one
            ValueError: unknown mode
        """
        mode = VerifyMode(mode)
        if mode is VerifyMode.NONE:
            return

        failures = []
        if mode in (VerifyMode.MD5, VerifyMode.ALL):
            failures.append(cls._check("md5", remote_file.md5, cls.md5_for, local_file))
        if mode in (VerifyMode.CRC32C, VerifyMode.ALL):
            failures.append(cls._check("crc32c", remote_file.crc32c, cls.crc32c_for, local_file))

        for failure in failures:
            if failure is not None:
                raise failure

    @staticmethod
    def _check(kind: str, expected: Any, digest_for: Any, local_file: Any) -> FileVerificationError | None:
        if not expected:
            logger.warning(f"Skipping {kind} verification: remote object has no {kind} digest")
            return None

        actual = digest_for(local_file)
        if digests_match(expected, actual):
            logger.debug(f"{kind} verification passed")
            return None

        logger.error(f"{kind} verification failed: expected {expected}, got {actual}")
        return FileVerificationError(kind, expected, actual)

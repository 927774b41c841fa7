from __future__ import annotations

import dataclasses
import io
import logging
import os
import pathlib
from typing import IO
from typing import Any
from typing import Optional
from typing import Union

from cloudstore.errors import FileVerificationError
from cloudstore.services.base import StorageService
from cloudstore.services.encryption_headers import key_headers
from cloudstore.services.encryption_headers import request_options
from cloudstore.services.verifier import DigestingWriter
from cloudstore.services.verifier import Verifier
from cloudstore.services.verifier import VerifyMode
from cloudstore.services.verifier import can_read_back


logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class PathTarget:
    path: Union[str, "os.PathLike[str]"]

    @property
    def download_dest(self) -> Any:
        return self.path

    @property
    def local_file(self) -> Any:
        return self.path

    def result(self) -> pathlib.Path:
        return pathlib.Path(self.path)


@dataclasses.dataclass(frozen=True)
class StreamTarget:
    stream: IO[bytes]
    # Set for streams that cannot be read back; digests are taken while writing
    tee: Optional[DigestingWriter] = None

    @property
    def download_dest(self) -> Any:
        return self.tee if self.tee is not None else self.stream

    @property
    def local_file(self) -> Any:
        return self.tee if self.tee is not None else self.stream

    def result(self) -> IO[bytes]:
        return self.stream


@dataclasses.dataclass(frozen=True)
class InMemoryTarget:
    buffer: io.BytesIO = dataclasses.field(default_factory=io.BytesIO)

    @property
    def download_dest(self) -> Any:
        return self.buffer

    @property
    def local_file(self) -> Any:
        return self.buffer

    def result(self) -> io.BytesIO:
        self.buffer.seek(0)
        return self.buffer


DownloadTarget = Union[PathTarget, StreamTarget, InMemoryTarget]


def resolve_target(destination: Any) -> DownloadTarget:
    """Classify a download destination once, at entry."""
    if destination is None:
        return InMemoryTarget()
    if isinstance(destination, (str, os.PathLike)):
        return PathTarget(destination)
    if callable(getattr(destination, "write", None)):
        if can_read_back(destination):
            return StreamTarget(destination)
        return StreamTarget(destination, tee=DigestingWriter(destination))
    raise TypeError(f"Unsupported download destination: {type(destination).__name__}")


class DownloadPipeline:
    def __init__(self, service: StorageService):
        self.service = service

    def run(
        self,
        file: Any,
        destination: Any = None,
        *,
        encryption_key: Optional[bytes] = None,
        verify: Union[VerifyMode, str] = VerifyMode.MD5,
        generation: Optional[int] = None,
    ) -> Any:
        """Fetch the object's bytes into ``destination`` and verify them.

        Returns a ``pathlib.Path`` (not an open handle) for path destinations,
        the caller's own stream for stream destinations and a rewound
        ``io.BytesIO`` otherwise. Streams that cannot be read back are hashed
        while the bytes are written.

        Raises:
            FileVerificationError: after the bytes were written, when a digest
                does not match; ``destination`` on the error holds the result
        """
        mode = VerifyMode(verify)
        target = resolve_target(destination)
        options = request_options(key_headers(encryption_key)) if encryption_key is not None else {}

        logger.info(f"Downloading {file.bucket}/{file.name} to {type(target).__name__}")
        self.service.get_object(
            file.bucket,
            file.name,
            generation=generation,
            download_dest=target.download_dest,
            options=options,
        )

        try:
            Verifier.verify(mode, file, target.local_file)
        except FileVerificationError as e:
            e.destination = target.result()
            raise

        return target.result()

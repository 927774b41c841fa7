"""File: one stored object version and the operations that act on it."""

from __future__ import annotations

import logging
import types
from datetime import datetime
from typing import Any
from typing import Callable
from typing import Mapping
from typing import Optional
from typing import Union
from urllib.parse import quote

from cloudstore.config import Config
from cloudstore.config import get_config
from cloudstore.models.object import ObjectResource
from cloudstore.models.object import ObjectUpdate
from cloudstore.services.acl import predefined_acl_for
from cloudstore.services.base import StorageService
from cloudstore.services.download_pipeline import DownloadPipeline
from cloudstore.services.encryption_headers import encryption_key_headers
from cloudstore.services.operation_id_service import operation_scope
from cloudstore.services.rewrite_loop import RewriteDescriptor
from cloudstore.services.rewrite_loop import RewriteLoop
from cloudstore.services.verifier import VerifyMode


logger = logging.getLogger(__name__)

UpdateBlock = Callable[[ObjectUpdate], Any]


class File:
    """A stored object, built from the metadata the service returned for it.

    Attributes are read-only views of that metadata. Settable attributes are
    changed through the ``update`` block of :meth:`copy`, which writes a new
    object instead of editing this one.
    """

    def __init__(
        self,
        resource: ObjectResource,
        service: StorageService,
        config: Optional[Config] = None,
        *,
        pin_generation: bool = False,
    ):
        self._resource = resource
        self.service = service
        self.config = config or get_config()
        self._pin_generation = pin_generation

    @classmethod
    def from_metadata(
        cls,
        metadata: Union[ObjectResource, Mapping[str, Any]],
        service: StorageService,
        config: Optional[Config] = None,
        *,
        pin_generation: bool = False,
    ) -> "File":
        """Wrap a service response (model or JSON mapping) in a File.

        With ``pin_generation`` downloads request exactly this generation.
        """
        resource = ObjectResource.model_validate(metadata)
        return cls(resource, service, config, pin_generation=pin_generation)

    def __repr__(self) -> str:
        return f"<File bucket={self.bucket!r} name={self.name!r} generation={self.generation!r}>"

    # Identity

    @property
    def bucket(self) -> str:
        return self._resource.bucket

    @property
    def name(self) -> str:
        return self._resource.name

    @property
    def generation(self) -> Optional[int]:
        return self._resource.generation

    # Fetched attributes

    @property
    def id(self) -> Optional[str]:
        return self._resource.id

    @property
    def etag(self) -> Optional[str]:
        return self._resource.etag

    @property
    def md5(self) -> Optional[str]:
        return self._resource.md5_hash

    @property
    def crc32c(self) -> Optional[str]:
        return self._resource.crc32c

    @property
    def size(self) -> Optional[int]:
        return self._resource.size

    @property
    def metageneration(self) -> Optional[int]:
        return self._resource.metageneration

    @property
    def created_at(self) -> Optional[datetime]:
        return self._resource.time_created

    @property
    def updated_at(self) -> Optional[datetime]:
        return self._resource.updated

    @property
    def api_url(self) -> Optional[str]:
        return self._resource.self_link

    @property
    def media_url(self) -> Optional[str]:
        return self._resource.media_link

    def public_url(self, protocol: str = "https") -> str:
        return f"{protocol}://{self.config.public_host}/{self.bucket}/{quote(self.name, safe='/~')}"

    # Settable on copy

    @property
    def cache_control(self) -> Optional[str]:
        return self._resource.cache_control

    @property
    def content_disposition(self) -> Optional[str]:
        return self._resource.content_disposition

    @property
    def content_encoding(self) -> Optional[str]:
        return self._resource.content_encoding

    @property
    def content_language(self) -> Optional[str]:
        return self._resource.content_language

    @property
    def content_type(self) -> Optional[str]:
        return self._resource.content_type

    @property
    def storage_class(self) -> Optional[str]:
        return self._resource.storage_class

    @property
    def metadata(self) -> Mapping[str, str]:
        """Custom metadata as a read-only mapping."""
        return types.MappingProxyType(dict(self._resource.metadata or {}))

    # Operations

    def delete(self) -> None:
        with operation_scope("delete", self._target()):
            logger.info(f"Deleting {self.bucket}/{self.name}")
            self.service.delete_object(self.bucket, self.name)

    def download(
        self,
        destination: Any = None,
        *,
        encryption_key: Optional[bytes] = None,
        verify: Union[VerifyMode, str, None] = None,
    ) -> Any:
        """
        Download the object's content and verify it against the stored digest.

        Args:
            destination: Filesystem path, writable binary stream, or None for
                an in-memory ``io.BytesIO``
            encryption_key: Customer-supplied key the object is encrypted with
            verify: "md5" (default), "crc32c", "all" or "none". A digest the
                service did not report (composite objects have no md5) is
                skipped with a warning, so such a download is NOT verified
                for that digest; use "all" to check whichever exists.

        Returns:
            For a path, a ``pathlib.Path`` to the written file, not an open
            handle; for a stream, that same stream; otherwise the filled
            ``io.BytesIO`` rewound to the start

        Raises:
            FileVerificationError: the content was written but does not match
        """
        mode = verify if verify is not None else self.config.default_verify
        with operation_scope("download", self._target()):
            return DownloadPipeline(self.service).run(
                self,
                destination,
                encryption_key=encryption_key,
                verify=mode,
                generation=self.generation if self._pin_generation else None,
            )

    def copy(
        self,
        dest_bucket_or_name: str,
        dest_name: Optional[str] = None,
        *,
        acl: Optional[str] = None,
        generation: Optional[int] = None,
        encryption_key: Optional[bytes] = None,
        update: Optional[UpdateBlock] = None,
        sleep: Optional[Callable[[float], None]] = None,
        max_iterations: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
    ) -> "File":
        """
        Copy the object to a new name, optionally in another bucket.

        ``file.copy("new.ext")`` copies within the same bucket;
        ``file.copy("other-bucket", "new.ext")`` copies across buckets.

        Args:
            acl: Predefined ACL for the new object, or an alias such as "public"
            generation: Source generation to copy instead of the live one
            encryption_key: Customer-supplied key of the source; the copy is
                encrypted with the same key
            update: Called with an ObjectUpdate seeded from this object; the
                fields it changes are applied to the copy
            sleep: Wait function used between rewrite requests
                (default ``time.sleep``)
            max_iterations: Rewrite request cap for this call; overrides
                ``CLOUDSTORE_REWRITE_MAX_ITERATIONS``
            deadline_seconds: Wall-clock limit for this call; overrides
                ``CLOUDSTORE_REWRITE_DEADLINE_SECONDS``

        Returns:
            A new File for the copy

        Raises:
            RewriteIncompleteError: the copy did not finish within the limits
        """
        if dest_name is None:
            dest_bucket, dest_name = self.bucket, dest_bucket_or_name
        else:
            dest_bucket = dest_bucket_or_name

        mutations = None
        if update is not None:
            updater = ObjectUpdate.from_resource(self._resource)
            update(updater)
            mutations = updater.changes()

        return self._rewrite(
            "copy",
            dest_bucket,
            dest_name,
            mutations=mutations,
            acl=acl,
            generation=generation,
            source_key=encryption_key,
            destination_key=encryption_key,
            sleep=sleep,
            max_iterations=max_iterations,
            deadline_seconds=deadline_seconds,
        )

    def rotate(
        self,
        *,
        encryption_key: Optional[bytes] = None,
        new_encryption_key: Optional[bytes] = None,
        sleep: Optional[Callable[[float], None]] = None,
        max_iterations: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
    ) -> "File":
        """
        Rewrite the object in place under a different customer-supplied key.

        Args:
            encryption_key: Key the object is currently encrypted with, if any
            new_encryption_key: Key for the rewritten object; None switches to
                service-managed encryption
            sleep, max_iterations, deadline_seconds: as for :meth:`copy`

        Returns:
            A new File for the rewritten object (same bucket and name)
        """
        return self._rewrite(
            "rotate",
            self.bucket,
            self.name,
            source_key=encryption_key,
            destination_key=new_encryption_key,
            sleep=sleep,
            max_iterations=max_iterations,
            deadline_seconds=deadline_seconds,
        )

    def reload(self) -> "File":
        """Refresh all attributes from the service, in place."""
        with operation_scope("reload", self._target()):
            metadata = self.service.get_object(self.bucket, self.name, generation=None, options={})
            self._resource = ObjectResource.model_validate(metadata)
            logger.debug(f"Reloaded {self.bucket}/{self.name} at generation {self.generation}")
        return self

    def _target(self) -> str:
        return f"{self.bucket}/{self.name}"

    def _rewrite(
        self,
        operation: str,
        dest_bucket: str,
        dest_name: str,
        *,
        mutations: Optional[dict] = None,
        acl: Optional[str] = None,
        generation: Optional[int] = None,
        source_key: Optional[bytes] = None,
        destination_key: Optional[bytes] = None,
        sleep: Optional[Callable[[float], None]] = None,
        max_iterations: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
    ) -> "File":
        descriptor = RewriteDescriptor(
            source_bucket=self.bucket,
            source_name=self.name,
            destination_bucket=dest_bucket,
            destination_name=dest_name,
            mutations=mutations,
            predefined_acl=predefined_acl_for(acl),
            source_generation=generation,
            headers=encryption_key_headers(source_key, destination_key),
        )
        loop = RewriteLoop(
            self.service,
            self.config,
            sleep=sleep,
            max_iterations=max_iterations,
            deadline_seconds=deadline_seconds,
        )
        with operation_scope(operation, f"{self._target()} -> {dest_bucket}/{dest_name}"):
            resource = loop.run(descriptor)
        return File(resource, self.service, self.config)

from __future__ import annotations

from datetime import datetime
from typing import Any
from typing import Dict
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import PrivateAttr
from pydantic import field_validator

from cloudstore.services.acl import storage_class_for


class ObjectResource(BaseModel):
    """Object resource as returned by the storage JSON API."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    kind: Optional[str] = None
    id: Optional[str] = None
    self_link: Optional[str] = Field(default=None, alias="selfLink")
    media_link: Optional[str] = Field(default=None, alias="mediaLink")
    name: str
    bucket: str
    generation: Optional[int] = None
    metageneration: Optional[int] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")
    content_disposition: Optional[str] = Field(default=None, alias="contentDisposition")
    content_encoding: Optional[str] = Field(default=None, alias="contentEncoding")
    content_language: Optional[str] = Field(default=None, alias="contentLanguage")
    cache_control: Optional[str] = Field(default=None, alias="cacheControl")
    storage_class: Optional[str] = Field(default=None, alias="storageClass")
    size: Optional[int] = None
    md5_hash: Optional[str] = Field(default=None, alias="md5Hash")
    crc32c: Optional[str] = None
    etag: Optional[str] = None
    time_created: Optional[datetime] = Field(default=None, alias="timeCreated")
    updated: Optional[datetime] = None
    metadata: Optional[Dict[str, str]] = None


class RewriteResponse(BaseModel):
    """One step of a server-side rewrite."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    kind: Optional[str] = None
    done: bool
    rewrite_token: Optional[str] = Field(default=None, alias="rewriteToken")
    total_bytes_rewritten: Optional[int] = Field(default=None, alias="totalBytesRewritten")
    object_size: Optional[int] = Field(default=None, alias="objectSize")
    resource: Optional[ObjectResource] = None


class ObjectUpdate(BaseModel):
    """Mutable copy of an object's settable attributes, handed to ``File.copy`` blocks.

    The fetched resource is never modified; only the differences between this
    builder and the values it was seeded with are sent to the service.
    """

    model_config = ConfigDict(validate_assignment=True)

    cache_control: Optional[str] = None
    content_disposition: Optional[str] = None
    content_encoding: Optional[str] = None
    content_language: Optional[str] = None
    content_type: Optional[str] = None
    storage_class: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    _seed: Optional[Dict[str, Any]] = PrivateAttr(default=None)

    @field_validator("storage_class", mode="before")
    @classmethod
    def _normalize_storage_class(cls, value: Any) -> Optional[str]:
        return storage_class_for(value)

    @classmethod
    def from_resource(cls, resource: ObjectResource) -> "ObjectUpdate":
        update = cls(
            cache_control=resource.cache_control,
            content_disposition=resource.content_disposition,
            content_encoding=resource.content_encoding,
            content_language=resource.content_language,
            content_type=resource.content_type,
            storage_class=resource.storage_class,
            metadata=dict(resource.metadata or {}),
        )
        update._seed = update.model_dump()
        return update

    def changes(self) -> Optional[Dict[str, Any]]:
        """Return the changed fields keyed by their wire names, or None if nothing changed."""
        seed = self._seed if self._seed is not None else ObjectUpdate().model_dump()
        current = self.model_dump()
        changed = [field for field, value in current.items() if seed.get(field) != value]
        if not changed:
            return None
        fields = ObjectResource.model_fields
        return {fields[field].alias or field: current[field] for field in changed}

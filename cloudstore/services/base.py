from __future__ import annotations

from typing import Any
from typing import Dict
from typing import Mapping
from typing import Optional
from typing import Protocol
from typing import Union

from cloudstore.models.object import ObjectResource
from cloudstore.models.object import RewriteResponse


class StorageService(Protocol):
    """Synchronous RPC surface of the object-storage service.

    ``options`` is either empty or ``{"header": {...}}`` carrying request
    headers such as customer-supplied encryption keys. Implementations own
    transport, authentication and retries, and raise the errors defined in
    ``cloudstore.errors``.
    """

    def delete_object(self, bucket: str, name: str) -> None: ...

    def get_object(
        self,
        bucket: str,
        name: str,
        generation: Optional[int] = None,
        download_dest: Any = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Union[ObjectResource, Mapping[str, Any], Any]: ...

    def rewrite_object(
        self,
        source_bucket: str,
        source_name: str,
        destination_bucket: str,
        destination_name: str,
        resource: Optional[Dict[str, Any]],
        destination_predefined_acl: Optional[str] = None,
        source_generation: Optional[int] = None,
        rewrite_token: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Union[RewriteResponse, Mapping[str, Any]]: ...

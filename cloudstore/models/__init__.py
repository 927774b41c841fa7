from cloudstore.models.object import ObjectResource
from cloudstore.models.object import ObjectUpdate
from cloudstore.models.object import RewriteResponse


__all__ = [
    "ObjectResource",
    "ObjectUpdate",
    "RewriteResponse",
]

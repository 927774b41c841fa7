"""Lookup tables for predefined ACL and storage class aliases.

Both tables pass unknown values through unchanged so that new service-side
values work without a client release.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional
from typing import Union


PREDEFINED_ACL_RULES = {
    "authenticatedRead": "authenticatedRead",
    "auth": "authenticatedRead",
    "auth_read": "authenticatedRead",
    "authenticated": "authenticatedRead",
    "authenticated_read": "authenticatedRead",
    "bucketOwnerFullControl": "bucketOwnerFullControl",
    "owner_full": "bucketOwnerFullControl",
    "bucketOwnerRead": "bucketOwnerRead",
    "owner_read": "bucketOwnerRead",
    "private": "private",
    "projectPrivate": "projectPrivate",
    "project_private": "projectPrivate",
    "publicRead": "publicRead",
    "public": "publicRead",
    "public_read": "publicRead",
}

STORAGE_CLASSES = {
    "durable_reduced_availability": "DURABLE_REDUCED_AVAILABILITY",
    "dra": "DURABLE_REDUCED_AVAILABILITY",
    "durable": "DURABLE_REDUCED_AVAILABILITY",
    "nearline": "NEARLINE",
    "coldline": "COLDLINE",
    "archive": "ARCHIVE",
    "multi_regional": "MULTI_REGIONAL",
    "regional": "REGIONAL",
    "standard": "STANDARD",
}


def _alias_text(value: Union[str, Enum]) -> str:
    if isinstance(value, Enum):
        value = value.value
    return str(value).lstrip(":")


def predefined_acl_for(acl: Optional[Union[str, Enum]]) -> Optional[str]:
    """Resolve an ACL alias such as ``"public"`` to the service constant ``"publicRead"``."""
    if acl is None:
        return None
    rule = _alias_text(acl)
    return PREDEFINED_ACL_RULES.get(rule, rule)


def storage_class_for(storage_class: Optional[Union[str, Enum]]) -> Optional[str]:
    """Resolve a storage class alias such as ``"nearline"`` to ``"NEARLINE"``."""
    if storage_class is None:
        return None
    text = _alias_text(storage_class)
    return STORAGE_CLASSES.get(text.lower(), text)

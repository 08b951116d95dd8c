"""Name normalization shared by layer matching and the reconciler."""

import re
from typing import Optional

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_IDENTIFIER = re.compile(r"[^a-zA-Z0-9_]+")
_REPEATED_UNDERSCORE = re.compile(r"__+")


def normalize_name(value: Optional[str]) -> str:
    """Case- and whitespace-insensitive key for entity names."""
    return (value or "").strip().lower()


def normalize_attribute_name(value: str) -> str:
    """snake_case an attribute name: 'Customer Email' and 'customerEmail' -> 'customer_email'."""
    if not value:
        return value
    name = value.strip()
    name = _CAMEL_BOUNDARY.sub(r"\1_\2", name)
    name = _NON_IDENTIFIER.sub("_", name)
    name = _REPEATED_UNDERSCORE.sub("_", name)
    return name.strip("_").lower()

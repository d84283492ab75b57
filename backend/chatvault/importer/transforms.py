"""
Named field transformations referenced by import plans.

Each transformation is a pure function of the incoming value and a suffix source;
the suffix source is the only place randomness enters, so tests can pass a
deterministic one.
"""

import uuid
from typing import Any, Callable, Dict

from chatvault.config import settings

SuffixSource = Callable[[], str]
FieldTransform = Callable[[Any, SuffixSource], Any]


def generate_suffix(length: int = None) -> str:
    """Short random hex string used to make a colliding value unique."""
    return uuid.uuid4().hex[: length or settings.import_suffix_length]


def suffixed(value: Any, suffix_source: SuffixSource) -> str:
    """Append a random suffix. An empty value becomes the bare suffix."""
    if not value:
        return suffix_source()
    return f"{value}-{suffix_source()}"


def suffixed_or_null(value: Any, suffix_source: SuffixSource) -> Any:
    """Append a random suffix, keeping an empty value as None."""
    if not value:
        return None
    return f"{value}-{suffix_source()}"


FIELD_TRANSFORMS: Dict[str, FieldTransform] = {
    "suffixed": suffixed,
    "suffixed_or_null": suffixed_or_null,
}


def apply_transform(name: str, value: Any, suffix_source: SuffixSource) -> Any:
    return FIELD_TRANSFORMS[name](value, suffix_source)

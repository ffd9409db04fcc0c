"""Common utilities and exceptions."""

from libs.common.exceptions import (
    ConfigurationError,
    DataQualityError,
    EventStudyPlatformError,
)
from libs.common.file_utils import (
    atomic_write_json,
    atomic_write_text,
    read_json,
)
from libs.common.hash_utils import (
    canonical_bytes,
    canonicalize,
    normalize_field_key,
    normalize_text,
    stable_hash,
)

__all__ = [
    "EventStudyPlatformError",
    "DataQualityError",
    "ConfigurationError",
    # Files
    "atomic_write_json",
    "atomic_write_text",
    "read_json",
    # Hashing
    "canonical_bytes",
    "canonicalize",
    "normalize_field_key",
    "normalize_text",
    "stable_hash",
]

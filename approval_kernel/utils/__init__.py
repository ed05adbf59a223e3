"""Utility modules for the approval kernel."""

from approval_kernel.utils.hashing import (
    canonicalize_json,
    hash_log_entry,
    hash_payload,
)
from approval_kernel.utils.ids import coerce_request_id

__all__ = [
    "canonicalize_json",
    "coerce_request_id",
    "hash_log_entry",
    "hash_payload",
]

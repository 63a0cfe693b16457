"""
Digests for artifacts and receipts.

Every digest in this package is written as ``"sha256:<64 lowercase hex>"``.
Structured values are hashed over their canonical JSON form: sorted keys,
no whitespace, UTF-8, NaN/Infinity rejected.
"""

import hashlib
import json
from typing import Any

DIGEST_PREFIX = "sha256:"


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize ``obj`` to canonical JSON as UTF-8 bytes."""
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def prefixed_digest(data: bytes) -> str:
    """SHA256 of raw bytes, prefixed."""
    return DIGEST_PREFIX + hashlib.sha256(data).hexdigest()


def content_digest(obj: Any) -> str:
    """SHA256 of the canonical JSON form of ``obj``, prefixed."""
    return prefixed_digest(canonical_json_bytes(obj))

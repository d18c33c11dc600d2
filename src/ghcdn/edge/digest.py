"""Subresource-integrity digests and entity tags."""

from __future__ import annotations

import base64
import hashlib

INTEGRITY_PREFIX = "sha384-"
WEAK_ETAG_THRESHOLD = 512 * 1024
_ETAG_PAYLOAD_LENGTH = 16


def compute_integrity(data: bytes) -> str:
    digest = hashlib.sha384(data).digest()
    return INTEGRITY_PREFIX + base64.b64encode(digest).decode("ascii")


def make_etag(integrity: str, size: int, *, weak_threshold: int = WEAK_ETAG_THRESHOLD) -> str:
    """Derive the validator from the first characters of the integrity hash.

    Bodies larger than ``weak_threshold`` get a weak validator.
    """
    payload = integrity[len(INTEGRITY_PREFIX):len(INTEGRITY_PREFIX) + _ETAG_PAYLOAD_LENGTH]
    prefix = "W/" if size > weak_threshold else ""
    return f'{prefix}"{payload}"'

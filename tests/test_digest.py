from __future__ import annotations

import base64
import hashlib

from ghcdn.edge.digest import compute_integrity, make_etag

EMPTY_SHA384 = "sha384-OLBgp1GsljhM2TJ+sbHjaiH9txEUvgdDTAzHv2P24donTt6/529l+9Ua0vFImLlb"


def test_integrity_of_empty_payload() -> None:
    assert compute_integrity(b"") == EMPTY_SHA384


def test_integrity_matches_sha384_base64() -> None:
    payload = b"console.log('hi')"
    expected = base64.b64encode(hashlib.sha384(payload).digest()).decode()
    assert compute_integrity(payload) == f"sha384-{expected}"


def test_etag_uses_sixteen_digest_characters() -> None:
    integrity = compute_integrity(b"abc")
    assert make_etag(integrity, 3) == f'"{integrity[7:23]}"'


def test_etag_weak_only_above_threshold() -> None:
    integrity = compute_integrity(b"x")
    assert not make_etag(integrity, 512 * 1024).startswith("W/")
    assert make_etag(integrity, 512 * 1024 + 1).startswith('W/"')
    assert make_etag(integrity, 11, weak_threshold=10).startswith("W/")

from __future__ import annotations

import hashlib
import re

import pytest

from ingestion_gateway.services.hashing import DIGEST_HEX_LENGTH, compute_digest

HEX_DIGEST = re.compile(r"^[0-9a-f]{64}$")


@pytest.mark.parametrize("data", [b"", b"hello world", bytes(range(256)) * 64])
def test_digest_is_deterministic_lowercase_hex(data):
    first = compute_digest(data)

    assert first == compute_digest(data)
    assert len(first) == DIGEST_HEX_LENGTH
    assert HEX_DIGEST.match(first)


def test_digest_is_sha256():
    assert compute_digest(b"abc") == hashlib.sha256(b"abc").hexdigest()
    assert compute_digest(b"") == (
        "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
    )


def test_single_byte_change_changes_digest():
    assert compute_digest(b"report-v1") != compute_digest(b"report-v2")

from __future__ import annotations

import hashlib

DIGEST_HEX_LENGTH = 64


def compute_digest(data: bytes) -> str:
    """SHA-256 of ``data`` as lowercase hex. Depends on the bytes only."""
    return hashlib.sha256(data).hexdigest()

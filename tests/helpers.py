"""Constants and token builders shared by the test modules."""

from __future__ import annotations

import base64
import json
from typing import Any, Dict, Optional

TEST_BUCKET = "test-bucket"


def b64url(raw: bytes, *, padded: bool = False) -> str:
    encoded = base64.urlsafe_b64encode(raw).decode("ascii")
    return encoded if padded else encoded.rstrip("=")


def make_token(claims: Any, *, header: Optional[Dict[str, Any]] = None) -> str:
    """Unsigned JWT-shaped token with ``claims`` as its payload."""
    header_segment = b64url(json.dumps(header or {"alg": "none", "typ": "JWT"}).encode("utf-8"))
    payload = claims if isinstance(claims, bytes) else json.dumps(claims).encode("utf-8")
    return f"{header_segment}.{b64url(payload)}.signature"

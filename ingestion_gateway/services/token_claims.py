"""
Best-effort user identification from an ``Authorization`` header.

The bearer token is NOT verified: no signature, issuer, audience or expiry
check is performed. The upstream API gateway is expected to have authenticated
the caller already, and the identifier returned here is only a display label
recorded on the ingestion event. It must never be used for an authorization
decision.

Malformed input never fails the request. Each failure collapses to a sentinel
string instead:

    ""                          -> "anonymous"
    "Bearer" / "a b c"          -> "invalid-token"
    "Bearer abc"                -> "invalid-jwt"
    "Bearer a.!!!.c"            -> "decode-error"
    payload without a username  -> "unknown"
"""

from __future__ import annotations

import binascii
import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from jose.utils import base64url_decode

from ingestion_gateway.logger import get_logger

logger = get_logger(__name__)

ANONYMOUS = "anonymous"
INVALID_TOKEN = "invalid-token"
INVALID_JWT = "invalid-jwt"
DECODE_ERROR = "decode-error"
UNKNOWN = "unknown"

# Claims checked for a display name, in priority order.
IDENTITY_CLAIMS = ("preferred_username", "sub")

_BASE64URL_UNPADDED = re.compile(r"^[A-Za-z0-9_-]*$")


class IdentityKind(str, Enum):
    CLAIM = "claim"
    ANONYMOUS = "anonymous"
    MALFORMED = "malformed"


@dataclass(frozen=True, slots=True)
class TokenIdentity:
    """Outcome of reading a token: a claim value, no token, or a malformed token."""

    kind: IdentityKind
    value: str


class TokenParseError(Exception):
    """Internal signal for an unreadable token; carries the sentinel to report."""

    def __init__(self, sentinel: str, reason: str) -> None:
        super().__init__(reason)
        self.sentinel = sentinel


def extract_identity(auth_header: Optional[str]) -> TokenIdentity:
    """Resolve the caller's display identity from an ``Authorization`` header value."""
    if not auth_header:
        return TokenIdentity(IdentityKind.ANONYMOUS, ANONYMOUS)

    try:
        payload = _payload_segment(auth_header)
    except TokenParseError as exc:
        logger.debug("Unreadable bearer token: %s", exc, extra={"user_sentinel": exc.sentinel})
        return TokenIdentity(IdentityKind.MALFORMED, exc.sentinel)

    claims = _parse_claims(payload)
    for claim in IDENTITY_CLAIMS:
        value = claims.get(claim)
        if isinstance(value, str):
            return TokenIdentity(IdentityKind.CLAIM, value)

    return TokenIdentity(IdentityKind.MALFORMED, UNKNOWN)


def extract_user_id(auth_header: Optional[str]) -> str:
    """Display string for ``extract_identity``."""
    return extract_identity(auth_header).value


def _payload_segment(auth_header: str) -> bytes:
    parts = auth_header.split(" ")
    if len(parts) != 2:
        raise TokenParseError(INVALID_TOKEN, "expected '<scheme> <token>'")

    segments = parts[1].split(".")
    if len(segments) < 2:
        raise TokenParseError(INVALID_JWT, "token has no payload segment")

    encoded = segments[1]
    if not _BASE64URL_UNPADDED.match(encoded):
        raise TokenParseError(DECODE_ERROR, "payload is not unpadded base64url")
    try:
        return base64url_decode(encoded.encode("ascii"))
    except (binascii.Error, ValueError) as exc:
        raise TokenParseError(DECODE_ERROR, f"payload decoding failed: {exc}") from exc


def _parse_claims(payload: bytes) -> dict[str, Any]:
    try:
        claims = json.loads(payload)
    except ValueError:
        return {}
    return claims if isinstance(claims, dict) else {}

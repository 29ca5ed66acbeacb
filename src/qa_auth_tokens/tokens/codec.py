"""
Bearer Token Codec

Decodes compact `header.payload.signature` tokens WITHOUT verifying the
signature. The harness trusts the application it is testing; this module only
answers "is this string shaped like a token, what does it claim, and has it
expired?".

All functions are total (return False / None for bad input) except
`decode_or_raise`. Malformed input is the common case here: stale or
corrupted snapshots, unrelated storage values probed by the reader.
"""

import json
import logging
import math
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

from jwt.utils import base64url_decode

from ..exceptions import MalformedTokenError

logger = logging.getLogger(__name__)

TokenUse = Literal["id", "access"]

# header.payload.signature, URL-safe base64 alphabet, signature may be empty
TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*$")


@dataclass(frozen=True)
class DecodedToken:
    """Header and payload of a token, plus the raw string it came from."""

    header: dict[str, Any]
    payload: dict[str, Any]
    raw: str

    @property
    def exp(self) -> Any:
        return self.payload.get("exp")


@dataclass(frozen=True)
class ExpirationInfo:
    """Expiry view of a token's `exp` claim."""

    exp: float
    expires_at: datetime
    is_expired: bool
    time_remaining_seconds: int

    @property
    def minutes_remaining(self) -> int:
        return self.time_remaining_seconds // 60


def _now_seconds() -> int:
    return math.floor(time.time())


def is_well_formed(candidate: Any) -> bool:
    """Check the three-segment base64url shape. Never raises."""
    if not candidate or not isinstance(candidate, str):
        return False
    return TOKEN_PATTERN.fullmatch(candidate) is not None


def decode_or_raise(candidate: Any) -> DecodedToken:
    """
    Decode a token's header and payload without signature verification.

    Header and payload are base64url: PyJWT pads them to a multiple of 4
    and decodes with the URL-safe alphabet before parsing the JSON.

    Raises:
        MalformedTokenError: wrong segment count, empty header/payload, or a
            segment that is not base64url-encoded JSON object
    """
    if not isinstance(candidate, str):
        raise MalformedTokenError("Token must be a string", token_type=type(candidate).__name__)

    parts = candidate.split(".")
    if len(parts) != 3:
        raise MalformedTokenError(
            f"Token must have 3 segments, got {len(parts)}",
            segments=len(parts),
        )

    header_segment, payload_segment, _ = parts
    if not header_segment or not payload_segment:
        raise MalformedTokenError("Token header and payload must not be empty")

    # The signature segment is opaque: it is never decoded
    header = _decode_segment(header_segment, "header")
    payload = _decode_segment(payload_segment, "payload")

    return DecodedToken(header=header, payload=payload, raw=candidate)


def _decode_segment(segment: str, name: str) -> dict[str, Any]:
    try:
        document = json.loads(base64url_decode(segment))
    except ValueError as e:
        raise MalformedTokenError(f"Cannot decode token {name}: {e}", segment=name)
    if not isinstance(document, dict):
        raise MalformedTokenError(f"Token {name} is not a JSON object", segment=name)
    return document


def decode(candidate: Any) -> DecodedToken | None:
    """Decode a token, returning None when it is malformed."""
    try:
        return decode_or_raise(candidate)
    except MalformedTokenError as e:
        logger.debug(f"Token decode failed: {e.message}")
        return None


def _as_number(exp: Any) -> float | None:
    """Coerce an `exp` claim to a finite number, or None."""
    if isinstance(exp, bool):
        return float(exp)
    try:
        value = float(exp)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def is_expired(exp: Any) -> bool:
    """
    Check an `exp` claim (seconds since epoch) against the current time.

    - absent (None): not expired, not every token kind carries `exp`
    - present but not a number: expired (fail closed)
    - otherwise: expired iff exp <= now
    """
    if exp is None:
        return False

    value = _as_number(exp)
    if value is None:
        return True

    return value <= _now_seconds()


def expiration_info(candidate: Any) -> ExpirationInfo | None:
    """
    Describe when a token expires.

    Returns None if the token does not decode, carries no `exp`, or its `exp`
    is not a finite number.
    """
    decoded = decode(candidate)
    if decoded is None or decoded.exp is None:
        return None

    exp = _as_number(decoded.exp)
    if exp is None:
        return None

    try:
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None

    expired = is_expired(exp)
    remaining = 0 if expired else int(exp - _now_seconds())

    return ExpirationInfo(
        exp=exp,
        expires_at=expires_at,
        is_expired=expired,
        time_remaining_seconds=remaining,
    )


def classify(candidate: Any) -> TokenUse | None:
    """Return the `token_use` claim ("id" or "access"), if any."""
    decoded = decode(candidate)
    if decoded is None:
        return None
    token_use = decoded.payload.get("token_use")
    if token_use in ("id", "access"):
        return token_use
    return None


def is_usable(candidate: Any) -> bool:
    """
    Decide whether a token is acceptable to send to the server under test.

    Well-formed AND decodable AND (no `exp` claim OR not expired). Every
    higher layer uses this single predicate.
    """
    if not is_well_formed(candidate):
        return False

    decoded = decode(candidate)
    if decoded is None:
        return False

    if decoded.exp is not None:
        return not is_expired(decoded.exp)

    return True


def describe_unusable(candidate: Any) -> str:
    """Explain why `is_usable` rejected a token, for operator messages."""
    info = expiration_info(candidate)
    if info is not None and info.is_expired:
        return f"expired (exp={info.exp:.0f}, expired at {info.expires_at.isoformat()})"
    if decode(candidate) is not None and is_well_formed(candidate):
        return "expired (exp claim is not a number)"
    return "malformed"

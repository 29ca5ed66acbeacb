"""
Token Lifecycle Errors

Typed errors raised by the token lifecycle harness.

The codec and the storage reader degrade to sentinel values, so most of these
only surface at the outer boundary (provisioner, resolver, strict validator),
where a failing test shows the message verbatim.

Error Code Reference:
- MALFORMED_TOKEN: segment count or encoding is wrong
- TOKEN_NOT_FOUND / BEARER_NOT_FOUND: no candidate token in storage
- BEARER_EXPIRED / BEARER_INVALID: candidate found but not usable
- TOKEN_INVALID: strict check failed, regeneration required
- PROVISIONING_FAILED: the regeneration pass itself failed
"""

from typing import Any


class TokenLifecycleError(Exception):
    """Base exception for all token lifecycle errors."""

    error_code: str = "TOKEN_ERROR"
    is_retryable: bool = False  # True when a regeneration pass can fix it

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(message)
        self.message = message
        self.details = kwargs

    def to_dict(self) -> dict:
        """Convert error to a JSON-friendly mapping for reports."""
        payload = {
            "error": {
                "code": self.error_code,
                "message": self.message,
            }
        }
        for key, value in self.details.items():
            payload["error"][key] = value
        return payload

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class MalformedTokenError(TokenLifecycleError):
    """Token does not have three base64url segments holding JSON objects."""

    error_code = "MALFORMED_TOKEN"
    is_retryable = True


class TokenNotFoundError(TokenLifecycleError):
    """No candidate token was located in the inspected storage entries."""

    error_code = "TOKEN_NOT_FOUND"
    is_retryable = True

    def __init__(self, identity: str, inspected_keys: list[str], **kwargs: Any):
        keys = ", ".join(inspected_keys) or "(none)"
        super().__init__(
            self._describe(identity, keys),
            identity=identity,
            inspected_keys=list(inspected_keys),
            **kwargs,
        )
        self.identity = identity
        self.inspected_keys = list(inspected_keys)

    @staticmethod
    def _describe(identity: str, keys: str) -> str:
        return f'No token found in storage for "{identity}". Inspected keys: {keys}'


class BearerNotFoundError(TokenNotFoundError):
    """No bearer token in the live storage of a browsing context."""

    error_code = "BEARER_NOT_FOUND"

    @staticmethod
    def _describe(identity: str, keys: str) -> str:
        return f'Bearer token not found in storage of profile "{identity}". Inspected keys: {keys}'


class BearerExpiredOrInvalidError(TokenLifecycleError):
    """A bearer candidate was found but is expired or structurally invalid."""

    error_code = "BEARER_INVALID"
    is_retryable = True

    def __init__(self, message: str, identity: str, expired: bool = False, **kwargs: Any):
        super().__init__(message, identity=identity, expired=expired, **kwargs)
        self.identity = identity
        self.expired = expired
        if expired:
            self.error_code = "BEARER_EXPIRED"


class TokenInvalidError(TokenLifecycleError):
    """Strict validation failed; the caller asked for no automatic repair."""

    error_code = "TOKEN_INVALID"
    is_retryable = False

    def __init__(self, message: str, identity: str, **kwargs: Any):
        super().__init__(message, identity=identity, **kwargs)
        self.identity = identity


class ProvisioningFailedError(TokenLifecycleError):
    """The regeneration pass failed (driver crashed, storage unwritable...)."""

    error_code = "PROVISIONING_FAILED"
    is_retryable = False

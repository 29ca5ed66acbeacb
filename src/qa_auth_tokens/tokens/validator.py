"""
Snapshot Token Validator

Answers "is the persisted token for this identity usable right now?".

`validate` never raises: every failure degrades to False plus one log line
naming the precondition that failed (missing file, bad shape, no token,
expired, malformed). `ensure_valid` is the strict variant for callers that
do not want automatic regeneration.
"""

import logging

from ..exceptions import TokenInvalidError, TokenNotFoundError
from ..storage import SnapshotStore, parse_storage_state
from . import codec
from .reader import entries_from_state, resolve_token

logger = logging.getLogger(__name__)


class TokenValidator:
    """Validates identity snapshots on disk."""

    def __init__(self, store: SnapshotStore):
        self.store = store

    def validate(self, identity) -> bool:
        """
        Check that the identity's snapshot holds a usable token.

        Args:
            identity: Role name or Identity

        Returns:
            True if a token was found and `codec.is_usable` accepts it
        """
        path = self.store.path_for(identity)
        logger.info(f"Checking {identity} token validity...")

        if not self.store.exists(identity):
            logger.warning(f"Token file not found: {path}")
            return False

        try:
            document = self.store.load_raw(identity)
        except (OSError, ValueError) as e:
            logger.warning(f"Invalid storage format for {identity}: {e}")
            return False

        state = parse_storage_state(document)
        if state is None:
            logger.warning(f"Invalid storage format for {identity}")
            return False

        try:
            candidate = resolve_token(entries_from_state(state), str(identity))
        except TokenNotFoundError as e:
            keys = ", ".join(e.inspected_keys) or "(none)"
            logger.warning(f"No token found in storage for {identity} (keys: {keys})")
            return False

        token = candidate.token
        if not codec.is_usable(token):
            info = codec.expiration_info(token)
            if info is not None and info.is_expired:
                logger.warning(
                    f"Token expired for {identity} "
                    f"(exp: {info.exp:.0f}, expired at: {info.expires_at.isoformat()})"
                )
            else:
                logger.warning(f"Invalid token format for {identity} ({codec.describe_unusable(token)})")
            return False

        info = codec.expiration_info(token)
        if info is not None:
            logger.info(
                f"Valid token found for {identity} "
                f"(expires: {info.expires_at.isoformat()}, {info.minutes_remaining} minutes remaining)"
            )
        else:
            logger.info(f"Valid token found for {identity} (no exp claim)")

        return True

    def ensure_valid(self, identity) -> None:
        """
        Require a usable token without attempting regeneration.

        Raises:
            TokenInvalidError: snapshot missing or stale
        """
        if self.validate(identity):
            logger.info(f"Valid token found for {identity}, proceeding...")
            return

        path = self.store.path_for(identity)
        reason = "stale" if self.store.exists(identity) else "missing"
        raise TokenInvalidError(
            f"Token validation failed for {identity}: snapshot {path} is {reason}. "
            "Regeneration is required: run `qa-auth-tokens generate`.",
            identity=str(identity),
            snapshot_path=str(path),
            reason=reason,
        )

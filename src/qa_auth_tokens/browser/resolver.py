"""
Bearer Resolver

What test code calls before an authenticated HTTP request: reads the
identity's live storage and returns the raw bearer token. Composing the
`Authorization` header is the caller's job (see `qa_auth_tokens.http`).
"""

import logging

from ..config import Settings
from ..exceptions import BearerExpiredOrInvalidError, BearerNotFoundError, TokenNotFoundError
from ..storage import SnapshotStore
from ..tokens import codec
from ..tokens.reader import resolve_token
from .driver import BrowserDriver
from .provisioner import TokenProvisioner

logger = logging.getLogger(__name__)


class BearerResolver:
    """Resolves bearer tokens from identity snapshots."""

    def __init__(
        self,
        settings: Settings,
        driver: BrowserDriver,
        provisioner: TokenProvisioner | None = None,
    ):
        self.settings = settings
        self.driver = driver
        self.store = SnapshotStore(settings.storage_dir)
        self.provisioner = provisioner

    async def resolve(self, identity, base_url: str | None = None) -> str:
        """
        Return the bearer token held in an identity's storage.

        Args:
            identity: Role name or Identity
            base_url: Application base URL (defaults to settings.base_url)

        Returns:
            The raw token, without any scheme prefix

        Raises:
            BearerNotFoundError: no candidate token in storage
            BearerExpiredOrInvalidError: candidate found but unusable
        """
        snapshot_path = self.store.path_for(identity)
        entries = await self.driver.read_storage(snapshot_path, base_url or self.settings.base_url)
        logger.debug(f"{identity}: inspecting {len(entries)} storage entries")

        try:
            candidate = resolve_token(entries, str(identity))
        except TokenNotFoundError as e:
            raise BearerNotFoundError(str(identity), e.inspected_keys) from e

        token = candidate.token
        if codec.is_usable(token):
            logger.info(f"{identity}: bearer resolved from {candidate.key}")
            return token

        info = codec.expiration_info(token)
        if info is not None and info.is_expired:
            raise BearerExpiredOrInvalidError(
                f"Token found but EXPIRED (exp={info.exp:.0f}, expired at: "
                f"{info.expires_at.isoformat()}). Delete {snapshot_path} and "
                f'regenerate the login for profile "{identity}".',
                identity=str(identity),
                expired=True,
                key=candidate.key,
            )

        raise BearerExpiredOrInvalidError(
            f'Invalid token for profile "{identity}" ({codec.describe_unusable(token)}, '
            f"key {candidate.key}).",
            identity=str(identity),
            key=candidate.key,
        )

    async def get_bearer_token(self, identity, base_url: str | None = None) -> str:
        """
        Ensure the identity's snapshot is usable, then resolve its bearer.

        Raises:
            ProvisioningFailedError: regeneration was needed and failed
            BearerNotFoundError, BearerExpiredOrInvalidError: see `resolve`
        """
        if self.provisioner is None:
            self.provisioner = TokenProvisioner(self.settings, self.driver)
        await self.provisioner.ensure_valid_token(identity)
        return await self.resolve(identity, base_url)

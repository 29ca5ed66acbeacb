"""
Token Provisioner

Self-healing entry point: makes sure an identity has a usable snapshot,
regenerating snapshots through a scripted browser login when needed.

State machine per process: IDLE -> REGENERATING -> IDLE.

A regeneration pass logs in every configured identity (not only the one
asked for): a browser launch is expensive and other tests run against other
roles. Only one pass runs at a time; callers arriving during a pass wait for
it and reuse its result.
"""

import asyncio
import enum
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from ..config import DEFAULT_ROLE, Identity, Settings
from ..exceptions import ProvisioningFailedError
from ..storage import SnapshotStore
from ..tokens.validator import TokenValidator
from .driver import BrowserDriver

logger = logging.getLogger(__name__)


class ProvisionerState(enum.Enum):
    IDLE = "idle"
    REGENERATING = "regenerating"


class RegenerationGuard:
    """
    Process-wide regeneration state.

    REGENERATING while any pass holds or waits for the lock. Entered only
    through `hold()`, which releases on every exit path, cancellation included.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._passes = 0

    @property
    def state(self) -> ProvisionerState:
        if self._passes:
            return ProvisionerState.REGENERATING
        return ProvisionerState.IDLE

    @property
    def is_regenerating(self) -> bool:
        return self._passes > 0

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        # Counted before any await: no suspension between a caller's validity check and here
        self._passes += 1
        try:
            async with self._lock:
                yield
        finally:
            self._passes -= 1

    async def wait_idle(self, poll_interval: float) -> None:
        while self.is_regenerating:
            await asyncio.sleep(poll_interval)


# Shared by every provisioner in the process unless one is injected.
_guard = RegenerationGuard()


class TokenProvisioner:
    """Validates snapshots and regenerates them when they are unusable."""

    def __init__(
        self,
        settings: Settings,
        driver: BrowserDriver,
        validator: TokenValidator | None = None,
        identities: list[Identity] | None = None,
        guard: RegenerationGuard | None = None,
    ):
        self.settings = settings
        self.driver = driver
        self.store = validator.store if validator else SnapshotStore(settings.storage_dir)
        self.validator = validator or TokenValidator(self.store)
        self._identities = identities
        self._guard = guard or _guard

    @property
    def identities(self) -> list[Identity]:
        """Identities covered by a regeneration pass, in order."""
        if self._identities is not None:
            return list(self._identities)
        return self.settings.identities()

    @property
    def is_regenerating(self) -> bool:
        return self._guard.is_regenerating

    async def ensure_valid_token(self, identity=DEFAULT_ROLE) -> None:
        """
        Make sure `identity` has a usable snapshot, regenerating if needed.

        Raises:
            ProvisioningFailedError: the regeneration pass failed
        """
        if self._guard.is_regenerating:
            await self._wait_for_regeneration(identity)
            return

        logger.info(f"Checking {identity} token...")

        # validate() does not suspend, so nobody can start a pass in between
        if self.validator.validate(identity):
            logger.info(f"Token {identity} valid, proceeding")
            return

        logger.warning(f"Token {identity} invalid or missing")
        await self.regenerate_all()

        if not self.validator.validate(identity):
            logger.warning(f"Token {identity} still unusable after regeneration")

    async def _wait_for_regeneration(self, identity) -> None:
        logger.info("Waiting for the regeneration in progress...")
        await self._guard.wait_idle(self.settings.regeneration_poll_interval)

        if self.validator.validate(identity):
            logger.info(f"Token {identity} valid after regeneration")
        else:
            logger.warning(f"Token {identity} still unusable after regeneration")

    async def regenerate_all(self) -> None:
        """
        Regenerate snapshots for every identity that has credentials.

        One identity's login failure does not abort the pass.

        Raises:
            ProvisioningFailedError: the pass itself failed
        """
        async with self._guard.hold():
            try:
                logger.info("Regenerating tokens automatically...")
                logger.info("This may take 30-60 seconds...")

                self.store.ensure_dir()

                generated = 0
                for identity in self.identities:
                    if await self.generate_token_for_role(identity):
                        generated += 1

                logger.info(f"Tokens regenerated successfully ({generated} generated)")
            except Exception as e:
                logger.error(f"Error regenerating tokens: {e}")
                raise ProvisioningFailedError(
                    "Automatic token regeneration failed. Check your credentials in .env",
                    cause=str(e),
                ) from e

    async def generate_token_for_role(self, identity: Identity) -> bool:
        """
        Log in as one identity and persist its snapshot.

        Returns:
            True if a new snapshot was written
        """
        if self.store.exists(identity) and self.validator.validate(identity):
            logger.info(f"{identity}: already valid")
            return False

        if not identity.has_credentials:
            logger.info(f"{identity}: no credentials in .env, skipping")
            return False

        logger.info(f"{identity}: generating token...")
        snapshot_path = self.store.path_for(identity)

        try:
            await self.driver.login(identity, snapshot_path)
        except Exception:
            logger.exception(f"{identity}: error generating token")
            return False

        self.store.secure(identity)
        logger.info(f"{identity}: token generated")
        return True

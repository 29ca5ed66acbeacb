"""
Browser Driver

The only place that talks to a real browser. Logging in to mint a snapshot and
reading live storage both go through the `BrowserDriver` protocol so the
lifecycle logic can be exercised with a fake driver.

Every method launches its own headless Chromium and closes it on all exit
paths.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Protocol, runtime_checkable

from ..config import Identity, Settings
from ..tokens.reader import STORAGE_DUMP_SCRIPT, StorageEntry, entries_from_page_storage

logger = logging.getLogger(__name__)


@runtime_checkable
class BrowserDriver(Protocol):
    """Credential-minting and storage-reading side effects."""

    async def login(self, identity: Identity, snapshot_path: Path) -> None:
        """Log in as `identity` and persist the context storage to `snapshot_path`."""
        ...

    async def read_storage(self, snapshot_path: Path, base_url: str) -> list[StorageEntry]:
        """Open a context seeded with `snapshot_path` and dump its storage."""
        ...


class PlaywrightDriver:
    """`BrowserDriver` backed by Playwright's async API and Chromium."""

    def __init__(self, settings: Settings):
        self.settings = settings

    @asynccontextmanager
    async def _browser(self) -> AsyncIterator:
        from playwright.async_api import async_playwright

        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=self.settings.headless)
            try:
                yield browser
            finally:
                await browser.close()

    async def login(self, identity: Identity, snapshot_path: Path) -> None:
        """
        Submit the standard login form and save the resulting storage state.

        The snapshot at `snapshot_path` is overwritten as a whole.
        """
        settings = self.settings

        async with self._browser() as browser:
            context = await browser.new_context(base_url=settings.base_url)
            page = await context.new_page()

            await page.goto(settings.login_path, wait_until="domcontentloaded")
            await page.fill(settings.document_selector, identity.document or "")
            await page.fill(settings.password_selector, identity.secret or "")
            await page.click(settings.submit_selector)

            # Let the post-login navigation settle before capturing storage
            await page.wait_for_timeout(settings.login_settle_ms)

            if "login=true" in page.url:
                logger.warning(f"{identity}: still on the login page after submit, saving anyway")

            await context.storage_state(path=str(snapshot_path))
            logger.debug(f"{identity}: storage state written to {snapshot_path}")

    async def read_storage(self, snapshot_path: Path, base_url: str) -> list[StorageEntry]:
        """
        Dump localStorage and sessionStorage of a context seeded with a snapshot.

        Navigating once to the login entry point lets the app rehydrate
        session-scoped storage from durable storage.
        """
        storage_state = str(snapshot_path) if Path(snapshot_path).is_file() else None
        if storage_state is None:
            logger.warning(f"Snapshot {snapshot_path} not found, reading an empty context")

        async with self._browser() as browser:
            context = await browser.new_context(base_url=base_url, storage_state=storage_state)
            page = await context.new_page()
            await page.goto(self.settings.login_path, wait_until="domcontentloaded")
            dump = await page.evaluate(STORAGE_DUMP_SCRIPT)

        return entries_from_page_storage(dump or {})

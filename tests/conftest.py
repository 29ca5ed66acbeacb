"""
Pytest Fixtures for Token Lifecycle Tests

Provides token factories, snapshot writers, settings bound to a temporary
storage directory, and a fake browser driver that counts logins.
"""

import asyncio
import json
import os
import time
from pathlib import Path
from typing import Callable
from unittest.mock import AsyncMock

import jwt
import pytest

from qa_auth_tokens.browser.provisioner import RegenerationGuard
from qa_auth_tokens.config import Identity, Settings
from qa_auth_tokens.tokens.reader import StorageEntry

# Configuration from environment
TEST_CONFIG = {
    "base_url": os.getenv("BASE_URL", "https://stg.conexaobiotec.com.br"),
    "admin_cpf": os.getenv("ADMIN_CPF"),
    "admin_password": os.getenv("ADMIN_PASSWORD"),
}

# HS256 key for building test tokens; signatures are never verified
TEST_SIGNING_KEY = "qa-auth-tokens-test-signing-key-0123456789"

ORIGIN = "https://stg.conexaobiotec.com.br"


def make_token(
    token_use: str | None = "id",
    exp_in: int | None = 3600,
    headers: dict | None = None,
    **claims,
) -> str:
    """Build a signed token with `exp` set `exp_in` seconds from now."""
    payload = {"sub": "user-123", **claims}
    if token_use is not None:
        payload["token_use"] = token_use
    if exp_in is not None:
        payload["exp"] = int(time.time()) + exp_in
    return jwt.encode(payload, TEST_SIGNING_KEY, algorithm="HS256", headers=headers)


def storage_state(items: list[tuple[str, str]], origin: str = ORIGIN) -> dict:
    """Storage-state document with the given localStorage items."""
    return {
        "cookies": [],
        "origins": [
            {
                "origin": origin,
                "localStorage": [{"name": name, "value": value} for name, value in items],
            }
        ],
    }


def write_snapshot(path: Path, document) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(document, str):
        path.write_text(document, encoding="utf-8")
    else:
        path.write_text(json.dumps(document), encoding="utf-8")
    return path


class FakeDriver:
    """
    In-memory `BrowserDriver`.

    `login` sleeps `delay` seconds (a suspension point, like a real browser)
    then writes a snapshot holding a fresh id token. `read_storage` returns the
    snapshot's localStorage plus any configured session entries.
    """

    def __init__(self, delay: float = 0.05, fail_for: set[str] | None = None):
        self.delay = delay
        self.fail_for = fail_for or set()
        self.session_entries: dict[str, list[StorageEntry]] = {}
        self.login = AsyncMock(side_effect=self._login)
        self.read_storage = AsyncMock(side_effect=self._read_storage)

    async def _login(self, identity: Identity, snapshot_path: Path) -> None:
        await asyncio.sleep(self.delay)
        if identity.name in self.fail_for:
            raise RuntimeError(f"login rejected for {identity.name}")
        items = [
            ("CognitoIdentityServiceProvider.client.LastAuthUser", identity.document or ""),
            ("CognitoIdentityServiceProvider.client.user.idToken", make_token("id")),
            ("CognitoIdentityServiceProvider.client.user.accessToken", make_token("access")),
        ]
        write_snapshot(Path(snapshot_path), storage_state(items))

    async def _read_storage(self, snapshot_path: Path, base_url: str) -> list[StorageEntry]:
        path = Path(snapshot_path)
        entries: list[StorageEntry] = []
        if path.is_file():
            document = json.loads(path.read_text(encoding="utf-8"))
            for item in document["origins"][0]["localStorage"]:
                entries.append(StorageEntry(f"ls:{item['name']}", item["value"]))
        return entries + self.session_entries.get(path.stem, [])

    @property
    def login_count(self) -> int:
        return self.login.await_count


@pytest.fixture
def test_config() -> dict:
    """Return test configuration."""
    return TEST_CONFIG


@pytest.fixture
def token_factory() -> Callable[..., str]:
    return make_token


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    return tmp_path / "storage"


@pytest.fixture
def settings(storage_dir: Path) -> Settings:
    """Settings with a temp storage dir and only admin credentials."""
    return Settings(
        _env_file=None,
        storage_dir=storage_dir,
        regeneration_poll_interval=0.01,
        admin_cpf="12345678900",
        admin_password="secret",
    )


@pytest.fixture
def admin(settings: Settings) -> Identity:
    return settings.identity("admin")


@pytest.fixture
def guest(settings: Settings) -> Identity:
    return settings.identity("guest")


@pytest.fixture
def snapshot(storage_dir: Path) -> Callable[..., Path]:
    """Write `<storage_dir>/<role>.json` from items or a raw document."""

    def _write(role: str, items=None, document=None) -> Path:
        if document is None:
            document = storage_state(items or [])
        return write_snapshot(storage_dir / f"{role}.json", document)

    return _write


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def guard() -> RegenerationGuard:
    """A fresh guard so tests never share regeneration state."""
    return RegenerationGuard()

"""Per-identity storage snapshots (Playwright storage_state.json files)."""

import json
import logging
import os
import platform
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class StorageItem(BaseModel):
    """A single localStorage entry."""

    name: str
    value: str


class OriginState(BaseModel):
    """Persisted storage of one origin."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    origin: str = ""
    local_storage: list[StorageItem] = Field(alias="localStorage")


class StorageState(BaseModel):
    """
    Storage-state document written by `BrowserContext.storage_state()`.

    Only the first origin's localStorage is read; cookies are carried
    through untouched.
    """

    model_config = ConfigDict(extra="ignore")

    cookies: list[dict[str, Any]] = Field(default_factory=list)
    origins: list[OriginState] = Field(min_length=1)


def parse_storage_state(document: Any) -> StorageState | None:
    """Validate a loaded snapshot document; None if the shape is unrecognized."""
    try:
        return StorageState.model_validate(document)
    except ValidationError as e:
        logger.debug(f"Unrecognized storage state shape: {e.error_count()} error(s)")
        return None


class SnapshotStore:
    """
    Locates and reads identity snapshots.

    Snapshots live at <storage_dir>/<identity>.json. They are written whole by
    the browser driver and never edited in place.
    """

    def __init__(self, storage_dir: Path) -> None:
        self.storage_dir = Path(storage_dir)

    def path_for(self, identity: Any) -> Path:
        return self.storage_dir / f"{identity}.json"

    def exists(self, identity: Any) -> bool:
        return self.path_for(identity).is_file()

    def load_raw(self, identity: Any) -> Any:
        """
        Read and JSON-parse a snapshot.

        Raises:
            OSError: file missing or unreadable
            ValueError: file is not JSON
        """
        raw = self.path_for(identity).read_text(encoding="utf-8")
        return json.loads(raw)

    def load(self, identity: Any) -> StorageState | None:
        """Load a snapshot; None if missing, unreadable or wrongly shaped."""
        try:
            document = self.load_raw(identity)
        except (OSError, ValueError):
            return None
        return parse_storage_state(document)

    def ensure_dir(self) -> Path:
        if not self.storage_dir.exists():
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created storage directory {self.storage_dir}")
        return self.storage_dir

    def secure(self, identity: Any) -> None:
        """Restrict a snapshot to the owner (0600) on POSIX systems."""
        path = self.path_for(identity)
        if platform.system() == "Windows" or not path.exists():
            return
        try:
            os.chmod(path, 0o600)
        except OSError:
            logger.warning(f"Could not set secure permissions on {path}")

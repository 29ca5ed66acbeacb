"""
Storage Snapshot Reader

Picks the most probable bearer token out of a browsing context's storage.

The application under test keeps its tokens under loosely-named keys in
localStorage/sessionStorage, sometimes nested inside JSON-encoded values.
Selection is an ordered list of rules evaluated over an ordered list of
entries (durable scope first, insertion order within each scope):

1. key looks like an id token (idToken, id_token, id-token)
2. value is a token with token_use == "id"
3. key looks like an access token
4. value is a token with token_use == "access"
5. value is any well-formed token

Only entries whose value is shaped like a token take part. The first rule
with a match wins; within a rule the first entry wins.
This precedence is a business rule: the API under test expects the id token.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, NamedTuple

from ..exceptions import TokenNotFoundError
from ..storage import StorageState
from . import codec

logger = logging.getLogger(__name__)

DURABLE_PREFIX = "ls"
SESSION_PREFIX = "ss"

ID_TOKEN_KEY = re.compile(r"id[-_]?token", re.IGNORECASE)
ACCESS_TOKEN_KEY = re.compile(r"access[-_]?token", re.IGNORECASE)

# Runs inside the page; dumps both storage scopes as ordered [key, value] pairs.
STORAGE_DUMP_SCRIPT = """
() => {
  const dump = (store) => {
    const out = [];
    for (let i = 0; i < store.length; i++) {
      const key = store.key(i);
      if (key !== null) out.push([key, store.getItem(key)]);
    }
    return out;
  };
  return { localStorage: dump(window.localStorage), sessionStorage: dump(window.sessionStorage) };
}
"""


class StorageEntry(NamedTuple):
    """One (scoped key, string value) pair visible in storage."""

    key: str
    value: str


@dataclass(frozen=True)
class TokenCandidate:
    """The token chosen by the selection rules and where it came from."""

    key: str
    token: str
    rule: str


Predicate = Callable[[StorageEntry], bool]

SELECTION_RULES: list[tuple[str, Predicate]] = [
    ("id-token-key", lambda e: ID_TOKEN_KEY.search(e.key) is not None),
    ("id-token-use", lambda e: codec.classify(e.value) == "id"),
    ("access-token-key", lambda e: ACCESS_TOKEN_KEY.search(e.key) is not None),
    ("access-token-use", lambda e: codec.classify(e.value) == "access"),
    ("any-token", lambda e: codec.is_well_formed(e.value)),
]


def _parse_object(value: Any) -> dict | None:
    """Parse a JSON object out of a storage value, if it holds one."""
    if not isinstance(value, str) or not value.startswith("{"):
        return None
    try:
        parsed = json.loads(value)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def expand_entries(entries: Iterable[StorageEntry]) -> list[StorageEntry]:
    """
    Flatten JSON-object values one level deep.

    An entry whose value is a JSON object is replaced, in place, by its
    string-valued fields keyed `<key>:<field>`. Other entries pass through.
    """
    expanded: list[StorageEntry] = []
    for entry in entries:
        nested = _parse_object(entry.value)
        if nested is None:
            expanded.append(entry)
            continue
        for field_name, field_value in nested.items():
            if isinstance(field_value, str):
                expanded.append(StorageEntry(f"{entry.key}:{field_name}", field_value))
    return expanded


def inspected_keys(entries: Iterable[StorageEntry]) -> list[str]:
    """List every key looked at, parents followed by their nested fields."""
    keys: list[str] = []
    for entry in entries:
        keys.append(entry.key)
        nested = _parse_object(entry.value)
        if nested:
            keys.extend(
                f"{entry.key}:{name}" for name, value in nested.items() if isinstance(value, str)
            )
    return keys


def select_token(entries: Iterable[StorageEntry]) -> TokenCandidate | None:
    """
    Apply the selection rules in order; None if nothing matches.

    Only values shaped like a token are candidates, whatever their key.
    """
    candidates = [entry for entry in expand_entries(entries) if codec.is_well_formed(entry.value)]

    for rule_name, predicate in SELECTION_RULES:
        for entry in candidates:
            if predicate(entry):
                logger.debug(f"Token selected from {entry.key} by rule {rule_name}")
                return TokenCandidate(key=entry.key, token=entry.value, rule=rule_name)

    return None


def resolve_token(entries: Iterable[StorageEntry], identity: str) -> TokenCandidate:
    """
    Select the bearer token for an identity.

    Raises:
        TokenNotFoundError: no rule matched; the message lists every
            inspected key, or "(none)" when storage was empty
    """
    entries = list(entries)
    candidate = select_token(entries)
    if candidate is None:
        raise TokenNotFoundError(identity, inspected_keys(entries))
    return candidate


def entries_from_items(prefix: str, items: Iterable[Any]) -> list[StorageEntry]:
    """Build scoped entries from `{name, value}` items or `[key, value]` pairs."""
    entries: list[StorageEntry] = []
    for item in items:
        if isinstance(item, dict):
            name, value = item.get("name"), item.get("value")
        else:
            name, value = item
        if name is None or not isinstance(value, str):
            continue
        entries.append(StorageEntry(f"{prefix}:{name}", value))
    return entries


def entries_from_state(state: StorageState) -> list[StorageEntry]:
    """Durable-scope entries of a parsed storage snapshot (first origin)."""
    return [
        StorageEntry(f"{DURABLE_PREFIX}:{item.name}", item.value)
        for item in state.origins[0].local_storage
    ]


def entries_from_page_storage(dump: dict[str, Any]) -> list[StorageEntry]:
    """Entries of a live page dump (see STORAGE_DUMP_SCRIPT), durable first."""
    return entries_from_items(DURABLE_PREFIX, dump.get("localStorage") or []) + entries_from_items(
        SESSION_PREFIX, dump.get("sessionStorage") or []
    )

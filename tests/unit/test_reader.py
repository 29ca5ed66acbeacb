"""
Unit tests for bearer token selection over storage entries.

Run with: pytest tests/unit/test_reader.py -v -m unit
"""

import json

import pytest

from conftest import make_token
from qa_auth_tokens.exceptions import TokenNotFoundError
from qa_auth_tokens.storage import parse_storage_state
from qa_auth_tokens.tokens.reader import (
    SELECTION_RULES,
    StorageEntry,
    entries_from_page_storage,
    entries_from_state,
    expand_entries,
    inspected_keys,
    resolve_token,
    select_token,
)

pytestmark = [pytest.mark.unit, pytest.mark.tokens]


def E(key: str, value: str) -> StorageEntry:
    return StorageEntry(key, value)


class TestSelectionRules:
    """Tests for rule precedence."""

    def test_rules_are_an_explicit_ordered_list(self):
        assert [name for name, _ in SELECTION_RULES] == [
            "id-token-key",
            "id-token-use",
            "access-token-key",
            "access-token-use",
            "any-token",
        ]

    def test_id_token_key_beats_access_token_key(self):
        id_token, access_token = make_token("id"), make_token("access")
        entries = [E("ls:idToken", id_token), E("ls:accessToken", access_token)]

        candidate = select_token(entries)

        assert candidate.token == id_token
        assert candidate.key == "ls:idToken"
        assert candidate.rule == "id-token-key"

    def test_rule_precedence_does_not_depend_on_entry_order(self):
        id_token, access_token = make_token("id"), make_token("access")
        entries = [E("ls:accessToken", access_token), E("ls:idToken", id_token)]

        assert select_token(entries).token == id_token

    def test_id_token_use_beats_any_token(self):
        plain, id_token = make_token(None), make_token("id")
        entries = [E("ls:session", plain), E("ls:user", id_token)]

        candidate = select_token(entries)

        assert candidate.token == id_token
        assert candidate.rule == "id-token-use"

    def test_id_token_use_beats_access_token_key(self):
        access_token, id_token = make_token("access"), make_token("id")
        entries = [E("ls:access_token", access_token), E("ls:user", id_token)]

        assert select_token(entries).rule == "id-token-use"

    def test_access_token_key_beats_access_token_use(self):
        by_use, by_key = make_token("access"), make_token(None)
        entries = [E("ls:credential", by_use), E("ls:my_access_token", by_key)]

        candidate = select_token(entries)

        assert candidate.token == by_key
        assert candidate.rule == "access-token-key"

    def test_access_token_use_beats_any_token(self):
        plain, access_token = make_token(None), make_token("access")
        entries = [E("ls:a", plain), E("ls:b", access_token)]

        assert select_token(entries).rule == "access-token-use"

    def test_any_token_picks_first_well_formed_value(self):
        first, second = make_token(None), make_token(None)
        entries = [E("ls:theme", "dark"), E("ls:a", first), E("ls:b", second)]

        candidate = select_token(entries)

        assert candidate.token == first
        assert candidate.rule == "any-token"

    @pytest.mark.parametrize(
        "key",
        [
            "ls:CognitoIdentityServiceProvider.abc123.12345678900.idToken",
            "ls:ID_TOKEN",
            "ss:oidc-id-token",
        ],
    )
    def test_id_token_key_variants(self, key):
        token = make_token(None)
        entries = [E("ls:accessToken", make_token("access")), E(key, token)]

        assert select_token(entries).key == key

    def test_key_rules_skip_values_that_are_not_tokens(self):
        token = make_token("id")
        entries = [E("ls:idToken", "garbage"), E("ls:other", token)]

        candidate = select_token(entries)

        assert candidate.token == token
        assert candidate.rule == "id-token-use"

    def test_id_token_named_metadata_does_not_beat_access_token(self):
        access_token = make_token("access")
        entries = [
            E("ls:idTokenExpiresAt", "1700000000"),
            E("ls:Cognito.user.accessToken", access_token),
        ]

        candidate = select_token(entries)

        assert candidate.token == access_token
        assert candidate.key == "ls:Cognito.user.accessToken"

    def test_no_token_shaped_values_under_token_keys(self):
        entries = [E("ls:id_token_hint", "abc"), E("ls:access_token", "")]

        assert select_token(entries) is None

    def test_no_match_returns_none(self):
        assert select_token([E("ls:theme", "dark")]) is None
        assert select_token([]) is None


class TestNestedValues:
    """Tests for JSON-encoded values inspected one level deep."""

    def test_nested_id_token_field(self):
        token = make_token("id")
        value = json.dumps({"idToken": token, "expiresAt": 1900000000})

        candidate = select_token([E("ls:auth", value)])

        assert candidate.key == "ls:auth:idToken"
        assert candidate.token == token

    def test_nested_fields_come_before_next_top_level_entry(self):
        nested, later = make_token(None), make_token(None)
        entries = [E("ls:session", json.dumps({"token": nested})), E("ls:other", later)]

        assert select_token(entries).key == "ls:session:token"

    def test_only_one_level_deep(self):
        deep = json.dumps({"outer": {"idToken": make_token("id")}})
        assert select_token([E("ls:auth", deep)]) is None

    def test_expand_replaces_json_object_with_string_fields(self):
        value = json.dumps({"a": "x", "n": 1, "b": "y"})
        entries = [E("ls:first", "1"), E("ls:obj", value), E("ss:last", "z")]

        assert expand_entries(entries) == [
            E("ls:first", "1"),
            E("ls:obj:a", "x"),
            E("ls:obj:b", "y"),
            E("ss:last", "z"),
        ]

    def test_non_object_json_is_left_alone(self):
        entries = [E("ls:list", "[1, 2]"), E("ls:num", "42"), E("ls:broken", "{not json")]
        assert expand_entries(entries) == entries


class TestResolveToken:
    """Tests for the failing variant and its diagnostics."""

    def test_returns_candidate(self):
        token = make_token("id")
        assert resolve_token([E("ls:idToken", token)], "admin").token == token

    def test_error_lists_every_inspected_key(self):
        entries = [
            E("ls:theme", "dark"),
            E("ls:prefs", json.dumps({"lang": "pt-BR"})),
            E("ss:tab", "3"),
        ]

        with pytest.raises(TokenNotFoundError) as exc_info:
            resolve_token(entries, "auditor")

        error = exc_info.value
        assert error.inspected_keys == ["ls:theme", "ls:prefs", "ls:prefs:lang", "ss:tab"]
        assert "auditor" in str(error)
        assert "ls:theme, ls:prefs, ls:prefs:lang, ss:tab" in str(error)

    def test_token_keys_without_token_values_raise(self):
        with pytest.raises(TokenNotFoundError) as exc_info:
            resolve_token([E("ls:id_token_hint", "abc")], "admin")

        assert exc_info.value.inspected_keys == ["ls:id_token_hint"]

    def test_error_marks_empty_storage(self):
        with pytest.raises(TokenNotFoundError) as exc_info:
            resolve_token([], "admin")

        assert "(none)" in str(exc_info.value)
        assert exc_info.value.inspected_keys == []

    def test_inspected_keys_without_nested_documents(self):
        assert inspected_keys([E("ls:a", "1"), E("ss:b", "2")]) == ["ls:a", "ss:b"]


class TestEntrySources:
    """Tests for building entries from snapshots and live page dumps."""

    def test_entries_from_state_prefix_durable_scope(self):
        state = parse_storage_state(
            {
                "origins": [
                    {"origin": "https://app", "localStorage": [{"name": "idToken", "value": "v1"}]},
                    {"origin": "https://other", "localStorage": [{"name": "x", "value": "v2"}]},
                ]
            }
        )

        assert entries_from_state(state) == [E("ls:idToken", "v1")]

    def test_page_dump_is_durable_first(self):
        dump = {
            "sessionStorage": [["idToken", "s1"]],
            "localStorage": [["b", "l1"], ["a", "l2"]],
        }

        assert entries_from_page_storage(dump) == [
            E("ls:b", "l1"),
            E("ls:a", "l2"),
            E("ss:idToken", "s1"),
        ]

    def test_page_dump_skips_null_values(self):
        dump = {"localStorage": [["a", None], ["b", "v"]], "sessionStorage": None}
        assert entries_from_page_storage(dump) == [E("ls:b", "v")]

    def test_session_token_found_when_durable_has_none(self):
        token = make_token("id")
        entries = entries_from_page_storage(
            {"localStorage": [["theme", "dark"]], "sessionStorage": [["oidc.user", json.dumps({"id_token": token})]]}
        )

        candidate = select_token(entries)

        assert candidate.key == "ss:oidc.user:id_token"
        assert candidate.token == token

"""Tests for secret redaction."""

import pytest

from blackbox_agent.models import create_log_entry
from blackbox_agent.redaction import (
    CIRCULAR,
    MASK,
    MAX_DEPTH,
    REDACT_NONE,
    TRUNCATED,
    Redactor,
    copy_value,
    mask_secrets,
    redact_message,
)


class Unprintable:
    def __str__(self):
        raise RuntimeError("no string form")


def _nested(depth: int):
    value = "leaf"
    for _ in range(depth):
        value = [value]
    return value


def _count_truncated(value) -> int:
    if value == TRUNCATED:
        return 1
    if isinstance(value, dict):
        return sum(_count_truncated(item) for item in value.values())
    return 0


class TestMaskSecrets:
    def test_flagged_key_masked(self):
        assert mask_secrets({"token": "abc123", "note": "fine"}) == {"token": "***", "note": "fine"}

    def test_key_match_is_case_insensitive_substring(self):
        data = {
            "X-Authorization": "Bearer xyz",
            "userPassword": "hunter2",
            "client_secret_value": "s",
            "API_KEY": "k",
            "username": "bob",
        }
        assert mask_secrets(data) == {
            "X-Authorization": MASK,
            "userPassword": MASK,
            "client_secret_value": MASK,
            "API_KEY": MASK,
            "username": "bob",
        }

    def test_flagged_key_not_recursed(self):
        """The whole value under a flagged key is replaced, even a mapping."""
        assert mask_secrets({"tokens": {"a": 1, "b": [2]}}) == {"tokens": MASK}

    def test_nested_mappings_and_arrays(self):
        data = {"users": [{"name": "ann", "password": "pw"}, {"name": "bo", "meta": {"secret": 1}}]}
        assert mask_secrets(data) == {
            "users": [{"name": "ann", "password": MASK}, {"name": "bo", "meta": {"secret": MASK}}]
        }

    def test_secret_shaped_string_masked(self):
        """Free text mentioning a credential is replaced whole."""
        assert mask_secrets(["plain", "Authorization: Bearer abc", "my api_key is x"]) == [
            "plain",
            MASK,
            MASK,
        ]

    def test_scalars_pass_through(self):
        assert mask_secrets({"n": 1, "f": 2.5, "b": True, "none": None}) == {
            "n": 1, "f": 2.5, "b": True, "none": None,
        }

    def test_tuples_and_sets_become_lists(self):
        assert mask_secrets((1, 2)) == [1, 2]
        assert mask_secrets({"s": {3}}) == {"s": [3]}

    def test_depth_bound(self):
        """Values nested past the bound are replaced by a placeholder."""
        masked = mask_secrets(_nested(MAX_DEPTH + 5))
        depth = 0
        while isinstance(masked, list):
            masked = masked[0]
            depth += 1
        assert masked == "[Truncated]"
        assert depth == MAX_DEPTH + 1

    def test_cyclic_structure_terminates(self):
        data = {"name": "loop"}
        data["self"] = data
        masked = mask_secrets(data)
        assert masked == {"name": "loop", "self": CIRCULAR}

    def test_fan_out_cycle_terminates(self):
        """Two back-references to the same mapping do not multiply the walk."""
        node = {"name": "root"}
        node["left"] = node
        node["right"] = node

        assert mask_secrets(node) == {"name": "root", "left": CIRCULAR, "right": CIRCULAR}
        assert copy_value(node) == {"name": "root", "left": CIRCULAR, "right": CIRCULAR}

    def test_cycle_through_list(self):
        items = ["head"]
        items.append({"back": items})
        assert mask_secrets(items) == ["head", {"back": CIRCULAR}]

    def test_shared_value_is_not_circular(self):
        """A value referenced twice, but not by itself, is copied both times."""
        shared = {"n": 1}
        assert mask_secrets({"a": shared, "b": shared}) == {"a": {"n": 1}, "b": {"n": 1}}

    def test_shared_fan_out_bounded_by_node_budget(self):
        """An acyclic graph of shared nodes stops after MAX_NODES visits."""
        node = "leaf"
        for _ in range(MAX_DEPTH):
            node = {"left": node, "right": node}

        copied = copy_value(node)

        assert isinstance(copied, dict)
        assert _count_truncated(copied) > 0

    def test_unprintable_leaf_replaced(self):
        assert mask_secrets({"obj": Unprintable()}) == {"obj": "[Unserializable]"}

    def test_input_not_mutated(self):
        data = {"token": "abc", "inner": {"password": "pw"}}
        mask_secrets(data)
        assert data == {"token": "abc", "inner": {"password": "pw"}}


class TestRedactMessage:
    def test_api_key_value_masked(self):
        assert redact_message("login with api_key=SECRET123") == "login with api_key=***"

    def test_token_value_masked_text_preserved(self):
        assert (
            redact_message("GET /items?token=abc&page=2 failed")
            == "GET /items?token=***&page=2 failed"
        )

    def test_multiple_pairs(self):
        assert redact_message("key=1 access_token=2 password=3") == "key=*** access_token=*** password=***"

    def test_names_merely_ending_in_key_untouched(self):
        assert redact_message("monkey=banana sort_key=date") == "monkey=banana sort_key=date"

    def test_compound_credential_names_masked(self):
        assert (
            redact_message("apiKey=a client_secret=b user_password=c refresh-token=d")
            == "apiKey=*** client_secret=*** user_password=*** refresh-token=***"
        )

    def test_plain_message_untouched(self):
        assert redact_message("user logged in") == "user logged in"

    def test_idempotent(self):
        once = redact_message("api_key=SECRET")
        assert redact_message(once) == once


class TestRedactor:
    def test_entry_fields_redacted(self):
        entry = create_log_entry("ERROR", "call failed token=abc", {
            "payload": {"token": "abc123", "note": "fine"},
            "context": {"module": "auth", "keyMask": "sk-****"},
            "http": {"method": "GET", "url": "https://api.test/?token=abc", "status": 401},
            "stack": "Error: password=hunter2",
        })

        redacted = Redactor().apply(entry)

        assert redacted.message == "call failed token=***"
        assert redacted.payload == {"token": "***", "note": "fine"}
        assert redacted.context.module == "auth"
        assert redacted.context.key_mask == "sk-****"
        assert redacted.http.url == MASK
        assert redacted.http.status == 401
        assert redacted.stack == "Error: password=***"

    def test_input_entry_unchanged(self):
        payload = {"token": "abc123"}
        entry = create_log_entry("INFO", "x", {"payload": payload})
        redacted = Redactor().apply(entry)

        assert redacted is not entry
        assert entry.payload == {"token": "abc123"}
        assert redacted.payload is not payload

    def test_none_mode_leaves_values(self):
        entry = create_log_entry("INFO", "api_key=SECRET", {"payload": {"token": "abc"}})
        result = Redactor(REDACT_NONE).apply(entry)

        assert result.message == "api_key=SECRET"
        assert result.payload == {"token": "abc"}
        assert result.payload is not entry.payload

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            Redactor("scramble")

from __future__ import annotations

import json

from scanpower_adapter.overrides import (
    PROXY_USERS_OPERATION,
    format_proxy_users,
    policy_for,
    proxy_user_confirmation,
)


def _structured(block: str) -> dict:
    inner = block.split("[STRUCTURED_DATA]\n", 1)[1].rsplit("\n[/STRUCTURED_DATA]", 1)[0]
    return json.loads(inner)


def test_listing_from_bare_list():
    texts = format_proxy_users([{"id": 10, "name": "Main store"}, {"id": "11", "name": ""}])

    assert texts is not None
    listing, structured = texts
    assert listing.startswith("Available Proxy Users:")
    assert "1. Main store (ID: 10)" in listing
    assert "2. Unnamed (ID: 11)" in listing
    assert 'Example: Call getProxyUsers with arguments: {"proxy_user_id": "10"}' in listing
    assert structured.startswith("\n\n[STRUCTURED_DATA]\n")
    assert _structured(structured) == {
        "proxyUsers": [{"id": "10", "name": "Main store"}, {"id": "11", "name": None}],
        "selected": None,
    }


def test_listing_from_items_wrapper():
    texts = format_proxy_users({"items": [{"id": 3, "name": "Warehouse"}]})
    assert texts is not None
    assert "1. Warehouse (ID: 3)" in texts[0]


def test_records_without_ids_are_skipped():
    texts = format_proxy_users([{"name": "ghost"}, {"id": 4}])
    assert "1. Unnamed (ID: 4)" in texts[0]
    assert "ghost" not in texts[0]


def test_unrecognised_payloads_fall_through():
    assert format_proxy_users({"message": "nothing"}) is None
    assert format_proxy_users([]) is None
    assert format_proxy_users("text") is None
    assert format_proxy_users([{"name": "no id"}]) is None


def test_confirmation_text():
    text = proxy_user_confirmation("42")
    assert text.startswith("Proxy user successfully set to: 42")


def test_policies():
    policy = policy_for(PROXY_USERS_OPERATION)
    assert policy.force_trailing_slash_path == "/account"
    assert policy.proxy_user_selection
    assert policy.response_formatter is format_proxy_users

    default = policy_for("getWidget")
    assert default.force_trailing_slash_path is None
    assert not default.proxy_user_selection
    assert default.response_formatter is None

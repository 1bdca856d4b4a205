"""Tests for relay definitions and payload guards."""

from __future__ import annotations

import pytest

from app.services.relays import DEFAULT_RELAY_ORDER, KNOWN_RELAYS, ProxyChain
from app.services.validation import is_valid_payload


def test_default_chain_order() -> None:
    assert ProxyChain.default().names == DEFAULT_RELAY_ORDER


def test_unknown_relay_name_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown relay proxy"):
        ProxyChain.from_names(["codetabs", "nope"])


def test_known_relays_rewrite_target() -> None:
    target = "https://phimapi.com/phim/dune?x=1"
    rewritten = {relay.name: relay.rewrite(target) for relay in KNOWN_RELAYS}

    assert rewritten["codetabs"] == (
        "https://api.codetabs.com/v1/proxy?quest=https%3A%2F%2Fphimapi.com%2Fphim%2Fdune%3Fx%3D1"
    )
    assert rewritten["thingproxy"] == f"https://thingproxy.freeboard.io/fetch/{target}"


def test_envelope_relay_unwraps_contents() -> None:
    relay = next(relay for relay in KNOWN_RELAYS if relay.name == "allorigins-get")

    assert relay.unwrap({"contents": "[]", "status": {}}) == "[]"
    assert relay.unwrap(["untouched"]) == ["untouched"]


@pytest.mark.parametrize(
    ("body", "expected"),
    [
        ([], True),
        ([{"title": "Dune"}], True),
        ({"items": []}, True),
        ({"status": True, "movie": {}}, True),
        ({"title": "Dune"}, True),
        ({}, False),
        ({"error": "rate limited"}, False),
        ({"items": None}, False),
        ("<html></html>", False),
        (None, False),
    ],
)
def test_is_valid_payload(body, expected) -> None:
    assert is_valid_payload(body) is expected


def test_is_valid_payload_accepts_hint_keys() -> None:
    assert is_valid_payload({"result": []}, hints={"result"})
    assert not is_valid_payload({"result": []})

"""Tests for user agent metadata extraction."""

from __future__ import annotations

from backend.privileges_api.utils.user_agent import apply_user_agent_defaults

AGENT = "PrivilegesAgent/479 CFNetwork/3826.500.111.1.1 Darwin/24.4.0"


def test_metadata_is_extracted_from_agent_header():
    enriched = apply_user_agent_defaults({}, AGENT)
    assert enriched == {
        "client_version": 479,
        "cf_network_version": "3826.500.111.1.1",
        "platform": "macOS",
        "os_version": "24.4.0",
    }


def test_payload_values_take_precedence():
    payload = {"client_version": 12, "platform": "Linux", "os_version": "6.1", "cf_network_version": "1.0"}
    assert apply_user_agent_defaults(payload, AGENT) == payload


def test_unknown_agent_falls_back_to_defaults():
    enriched = apply_user_agent_defaults({}, "curl/8.0")
    assert enriched["client_version"] == 1
    assert enriched["platform"] == "curl/8.0"
    assert enriched["cf_network_version"] is None
    assert enriched["os_version"] is None

    assert apply_user_agent_defaults({}, "")["platform"] == "Unknown"

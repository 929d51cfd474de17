"""Tests for token generation and expiration helpers."""

from __future__ import annotations

import re

import pytest

from backend.privileges_api.utils.tokens import (
    EXPIRATION_DURATIONS,
    compute_expiration,
    generate_token,
    is_expired,
)

NOW = 1_700_000_000


def clock() -> int:
    return NOW


def test_generated_token_format():
    token = generate_token()
    assert re.fullmatch(r"sk_[A-Za-z0-9_-]{32,}", token)


def test_generated_tokens_do_not_collide():
    tokens = {generate_token() for _ in range(10_000)}
    assert len(tokens) == 10_000


@pytest.mark.parametrize(
    ("code", "days"),
    [("1d", 1), ("7d", 7), ("30d", 30), ("90d", 90), ("365d", 365)],
)
def test_compute_expiration_for_symbolic_durations(code, days):
    assert compute_expiration(code, clock=clock) == NOW + days * 86400


def test_duration_vocabulary_is_complete():
    assert set(EXPIRATION_DURATIONS) == {"1d", "7d", "30d", "90d", "365d"}


@pytest.mark.parametrize("code", ["never", "", None])
def test_compute_expiration_without_expiry(code):
    assert compute_expiration(code, clock=clock) is None


def test_compute_expiration_accepts_literal_timestamp(caplog):
    with caplog.at_level("WARNING"):
        assert compute_expiration("1800000000", clock=clock) == 1_800_000_000
    assert "literal expiration timestamp" in caplog.text


def test_compute_expiration_rejects_unknown_codes():
    assert compute_expiration("2w", clock=clock) is None


def test_compute_expiration_uses_system_clock_by_default():
    import time

    before = int(time.time())
    result = compute_expiration("1d")
    after = int(time.time())
    assert before + 86400 <= result <= after + 86400


def test_is_expired():
    assert is_expired(None, clock=clock) is False
    assert is_expired(NOW - 1, clock=clock) is True
    assert is_expired(NOW, clock=clock) is False
    assert is_expired(NOW + 1, clock=clock) is False

"""Tests for UTC timestamp helpers and PII hashing."""
from datetime import datetime, timedelta, timezone

import pytest

from safeharbor.shared.utils import (
    configure_pii_salt,
    ensure_utc,
    hash_pii,
    parse_timestamp,
    utcnow,
)


class TestClock:
    def test_utcnow_is_aware(self):
        assert utcnow().tzinfo is not None

    def test_ensure_utc_treats_naive_as_utc(self):
        naive = datetime(2025, 1, 1, 12, 0)
        assert ensure_utc(naive) == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_ensure_utc_converts_offsets(self):
        plus_two = datetime(2025, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_utc(plus_two).hour == 12

    def test_parse_timestamp_accepts_z_suffix(self):
        parsed = parse_timestamp("2025-03-01T08:30:00Z")
        assert parsed == datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)

    def test_parse_timestamp_invalid(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


class TestPiiHashing:
    def test_short_salt_rejected(self):
        with pytest.raises(ValueError):
            configure_pii_salt("short")

    def test_hash_is_stable_and_opaque(self):
        configure_pii_salt("test_salt_that_is_at_least_32_characters_long")

        first = hash_pii("user_123")

        assert first == hash_pii("user_123")
        assert first != hash_pii("user_456")
        assert "user_123" not in first
        assert len(first) == 64

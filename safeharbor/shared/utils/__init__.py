"""Shared utilities for SafeHarbor."""
from .pii import hash_pii, hash_text_for_audit, configure_pii_salt
from .clock import utcnow, ensure_utc, parse_timestamp

__all__ = [
    "hash_pii",
    "hash_text_for_audit",
    "configure_pii_salt",
    "utcnow",
    "ensure_utc",
    "parse_timestamp",
]

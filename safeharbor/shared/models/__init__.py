"""Shared domain models for SafeHarbor."""
from .severity import Severity

__all__ = [
    "Severity",
]

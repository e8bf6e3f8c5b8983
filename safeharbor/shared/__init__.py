"""Shared code for SafeHarbor services."""

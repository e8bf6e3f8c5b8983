"""Audit Service: immutable audit trail for crisis workflow actions.

Accepted, rejected and conflicting transitions are all recorded, each
entry hash-chained to the previous one for tamper detection.
"""

from .audit_logger import AuditLogger, AuditAction, AuditEntry

__all__ = [
    "AuditLogger",
    "AuditAction",
    "AuditEntry",
]

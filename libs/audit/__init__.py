"""Immutable audit trail shared by every ledger component."""

from libs.audit.models import AuditLog  # noqa: F401
from libs.audit.recorder import record_audit  # noqa: F401

__all__ = ["AuditLog", "record_audit"]

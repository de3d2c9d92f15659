"""Audit logging package."""

from finbuddy.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]

"""Audit logging package."""

from meubolso.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]

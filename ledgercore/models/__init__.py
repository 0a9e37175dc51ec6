from ledgercore.models.audit import AuditLog

__all__ = ["AuditLog"]

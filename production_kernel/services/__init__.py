"""
Production kernel services.

Command services own the transaction boundary for article mutations;
the auditor and emitter are their collaborators.
"""

from production_kernel.services.audit_emitter import (
    AuditEmitter,
    AuditSink,
    InMemoryAuditSink,
    LoggingAuditSink,
)
from production_kernel.services.auditor_service import AuditorService, AuditTrace
from production_kernel.services.base import ArticleCommandService
from production_kernel.services.ledger_service import FloorLedgerService
from production_kernel.services.lock_registry import ArticleLockRegistry
from production_kernel.services.order_service import OrderService, PlacedOrder

__all__ = [
    "ArticleCommandService",
    "ArticleLockRegistry",
    "AuditEmitter",
    "AuditSink",
    "AuditTrace",
    "AuditorService",
    "FloorLedgerService",
    "InMemoryAuditSink",
    "LoggingAuditSink",
    "OrderService",
    "PlacedOrder",
]

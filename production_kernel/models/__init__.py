"""ORM models. Importing this package registers every table on Base.metadata."""

from production_kernel.models.audit_event import ArticleAuditEvent
from production_kernel.models.production import (
    ArticleModel,
    FloorLedgerModel,
    ProductionOrderModel,
)

__all__ = [
    "ArticleAuditEvent",
    "ArticleModel",
    "FloorLedgerModel",
    "ProductionOrderModel",
]

"""
Module: production_kernel.db.immutability
Responsibility: ORM event listeners that keep the audit trail append-only
    and stop worked articles from being deleted.
Architecture position: Kernel > DB.  Registered once at application start
    (and by the test suite) via register_immutability_listeners().

Invariants enforced:
    - ArticleAuditEvent rows are never updated or deleted.
    - An article whose ledgers hold any quantity is never deleted; it can
      only be completed or cancelled.  Its ledger rows go with it.

Failure modes:
    - ImmutabilityViolationError raised from the flush; the caller's
      transaction is rolled back by its session scope.
"""

from sqlalchemy import event

from production_kernel.exceptions import ImmutabilityViolationError
from production_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_registered = False


def _blocked(entity_type: str, entity_id: str, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type, entity_id=entity_id, reason=reason,
    )


def _check_audit_event_update(mapper, connection, target):
    _blocked(
        "ArticleAuditEvent", str(target.id), "UPDATE",
        "Audit events are immutable and cannot be modified",
    )


def _check_audit_event_delete(mapper, connection, target):
    _blocked(
        "ArticleAuditEvent", str(target.id), "DELETE",
        "Audit events cannot be deleted",
    )


def _has_quantity(article) -> bool:
    return any(
        row.received or row.completed or row.transferred_out
        for row in article.ledgers
    )


def _check_article_delete(mapper, connection, target):
    if _has_quantity(target):
        _blocked(
            "Article", str(target.id), "DELETE",
            "Worked articles are never deleted; cancel them instead",
        )


def register_immutability_listeners() -> None:
    """Register the append-only listeners (idempotent)."""
    global _registered
    if _registered:
        return

    from production_kernel.models.audit_event import ArticleAuditEvent
    from production_kernel.models.production import ArticleModel

    event.listen(ArticleAuditEvent, "before_update", _check_audit_event_update)
    event.listen(ArticleAuditEvent, "before_delete", _check_audit_event_delete)
    event.listen(ArticleModel, "before_delete", _check_article_delete)
    _registered = True
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove the listeners. FOR TESTING ONLY."""
    global _registered
    if not _registered:
        return

    from production_kernel.models.audit_event import ArticleAuditEvent
    from production_kernel.models.production import ArticleModel

    event.remove(ArticleAuditEvent, "before_update", _check_audit_event_update)
    event.remove(ArticleAuditEvent, "before_delete", _check_audit_event_delete)
    event.remove(ArticleModel, "before_delete", _check_article_delete)
    _registered = False

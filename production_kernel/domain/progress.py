"""
Progress Aggregator -- rolls floor ledgers up into article and order status.

Pure functions only.  The ledger service calls these after every
mutation and stores the results on the article row; replay and the
reconciliation script call the same functions so the derivations can
never drift apart.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal

from production_kernel.domain.dtos import ArticleStatus, OrderStatus
from production_kernel.domain.floors import Floor
from production_kernel.domain.ledger import FloorLedger

_HUNDRED = Decimal("100")

# Advancement order used to find an order's least-advanced article.
STATUS_RANK: dict[ArticleStatus, int] = {
    ArticleStatus.PENDING: 0,
    ArticleStatus.ON_HOLD: 1,
    ArticleStatus.IN_PROGRESS: 2,
    ArticleStatus.COMPLETED: 3,
}

WORKABLE_STATUSES: frozenset[ArticleStatus] = frozenset({
    ArticleStatus.PENDING,
    ArticleStatus.IN_PROGRESS,
    ArticleStatus.COMPLETED,
})


def total_completed(ledgers: Iterable[FloorLedger]) -> int:
    return sum(ledger.completed for ledger in ledgers)


def completion_ratio(planned_quantity: int, completed: int, places: int = 4) -> Decimal:
    """Unclamped completed/planned ratio."""
    if planned_quantity <= 0:
        return Decimal(0)
    quantum = Decimal(1).scaleb(-places)
    return (Decimal(completed) / Decimal(planned_quantity)).quantize(
        quantum, rounding=ROUND_HALF_UP,
    )


def progress_percent(planned_quantity: int, completed: int, places: int = 2) -> Decimal:
    """Display percentage: 100 * completed / planned, clamped to [0, 100]."""
    if planned_quantity <= 0:
        return Decimal(0)
    raw = _HUNDRED * Decimal(completed) / Decimal(planned_quantity)
    clamped = min(max(raw, Decimal(0)), _HUNDRED)
    quantum = Decimal(1).scaleb(-places)
    return clamped.quantize(quantum, rounding=ROUND_HALF_UP)


def status_after_work(
    current: ArticleStatus,
    planned_quantity: int,
    ledgers: Mapping[Floor, FloorLedger],
) -> ArticleStatus:
    """
    Status following a successful quantity operation.

    The first piece of work moves a pending article in progress; WAREHOUSE
    completing the planned quantity moves it to completed.  Completion is
    sticky: residual work on earlier floors never reopens the article.
    """
    status = current
    if status is ArticleStatus.PENDING:
        status = ArticleStatus.IN_PROGRESS
    warehouse = ledgers.get(Floor.WAREHOUSE)
    if (
        status is ArticleStatus.IN_PROGRESS
        and warehouse is not None
        and warehouse.completed >= planned_quantity
    ):
        status = ArticleStatus.COMPLETED
    return status


def derive_order_status(article_statuses: Iterable[ArticleStatus]) -> OrderStatus:
    """
    Order status is the status of its least-advanced live article.

    Cancelled articles are ignored unless every article is cancelled, in
    which case the order is cancelled.  An order with no articles is pending.
    """
    statuses = list(article_statuses)
    live = [s for s in statuses if s is not ArticleStatus.CANCELLED]
    if statuses and not live:
        return OrderStatus.CANCELLED
    if not live:
        return OrderStatus.PENDING
    return min(live, key=STATUS_RANK.__getitem__)

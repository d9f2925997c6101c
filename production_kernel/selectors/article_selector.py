"""
Module: production_kernel.selectors.article_selector
Responsibility: Floor status read model, article progress and audit trail
    queries for one article.
Architecture position: Kernel > Selectors.  Read-only.

Every figure is derived from the stored ledger quantities on each call;
the derived values are never persisted separately.  The frontier floor is
reported as a display hint only.
"""

from uuid import UUID

from sqlalchemy import select

from production_kernel.domain.dtos import (
    ArticleProgress,
    AuditEventRecord,
    FloorStatus,
)
from production_kernel.domain.floors import (
    CATALOG,
    Floor,
    FloorKind,
    parse_floor,
    route_for,
)
from production_kernel.domain.ledger import FloorLedger
from production_kernel.domain.progress import (
    completion_ratio,
    progress_percent,
    total_completed,
)
from production_kernel.exceptions import ArticleNotFoundError, FloorLedgerNotFoundError
from production_kernel.models.audit_event import ArticleAuditEvent
from production_kernel.models.production import ArticleModel
from production_kernel.selectors.base import BaseSelector


def _floor_status(ledger: FloorLedger, route: tuple[Floor, ...], frontier: Floor) -> FloorStatus:
    grades = None
    good_quantity = None
    match ledger.kind:
        case FloorKind.QUALITY_GATED:
            grades = ledger.grades
        case FloorKind.KNITTING:
            grades = ledger.grades
            good_quantity = ledger.eligible
        case FloorKind.STANDARD:
            pass
    return FloorStatus(
        floor=ledger.floor,
        in_route=ledger.floor in route,
        is_frontier=ledger.floor is frontier,
        received=ledger.received,
        completed=ledger.completed,
        transferred_out=ledger.transferred_out,
        eligible=ledger.eligible,
        remaining_to_process=ledger.remaining_to_process,
        available_to_transfer=ledger.available_to_transfer,
        completion_rate=ledger.completion_rate,
        grades=grades,
        good_quantity=good_quantity,
    )


class ArticleSelector(BaseSelector):
    """Read-side queries for a single article."""

    def _article(self, article_id: UUID) -> ArticleModel:
        article = self.session.get(ArticleModel, article_id)
        if article is None:
            raise ArticleNotFoundError(str(article_id))
        return article

    def get_floor_status(self, article_id: UUID, floor: Floor | str) -> FloorStatus:
        """
        Status of one floor for one article.

        Floors off the article's route report all zeros with
        ``in_route=False``.

        Raises:
            ArticleNotFoundError: unknown article.
            FloorLedgerNotFoundError: the article has no row for the floor.
        """
        target = parse_floor(floor)
        article = self._article(article_id)
        row = article.ledger_rows().get(target)
        if row is None:
            raise FloorLedgerNotFoundError(str(article_id), target.value)
        return _floor_status(
            row.to_dto(),
            route_for(article.routing_attribute),
            Floor(article.frontier_floor),
        )

    def get_all_floor_statuses(
        self,
        article_id: UUID,
        include_off_route: bool = False,
    ) -> list[FloorStatus]:
        """Floor statuses in route order, or in catalog order with ``include_off_route``."""
        article = self._article(article_id)
        route = route_for(article.routing_attribute)
        frontier = Floor(article.frontier_floor)
        rows = article.ledger_rows()
        floors = CATALOG if include_off_route else route
        return [
            _floor_status(rows[floor].to_dto(), route, frontier)
            for floor in floors
            if floor in rows
        ]

    def progress(self, article_id: UUID, places: int = 2) -> ArticleProgress:
        """Completion percentage (clamped) and raw ratio across every floor."""
        article = self._article(article_id)
        done = total_completed(article.ledger_dtos().values())
        return ArticleProgress(
            article_id=article.id,
            planned_quantity=article.planned_quantity,
            total_completed=done,
            percent=progress_percent(article.planned_quantity, done, places),
            ratio=completion_ratio(article.planned_quantity, done),
            status=article.article_status,
        )

    def audit_events(self, article_id: UUID) -> list[AuditEventRecord]:
        """The article's audit events in sequence order."""
        self._article(article_id)
        rows = self.session.execute(
            select(ArticleAuditEvent)
            .where(ArticleAuditEvent.article_id == article_id)
            .order_by(ArticleAuditEvent.seq)
        ).scalars()
        return [row.to_record() for row in rows]

    def article_ids_for_order(self, order_id: UUID) -> list[UUID]:
        return list(
            self.session.execute(
                select(ArticleModel.id)
                .where(ArticleModel.order_id == order_id)
                .order_by(ArticleModel.line_number)
            ).scalars()
        )

    def all_article_ids(self) -> list[UUID]:
        return list(self.session.execute(select(ArticleModel.id)).scalars())

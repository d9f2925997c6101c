"""
OrderService -- order intake and article lifecycle.

Responsibility
--------------
Places production orders (creating each article with its full set of
floor ledgers and its ArticleCreated audit event), derives order status
from the articles, and moves articles on hold, back off hold, or to
cancelled.

Architecture position
---------------------
**Kernel > Services**.  Lifecycle changes reuse the per-article lock and
transaction skeleton of ``ArticleCommandService``.  Order intake has no
existing article to lock; it runs in one transaction of its own.

Invariants enforced
-------------------
* A new article starts pending, with KNITTING.received = planned quantity,
  every other ledger zero and the frontier on KNITTING.
* Every article's audit stream starts with ArticleCreated at seq 1, so
  replay always begins from creation.
* Articles are never deleted; cancelling is the only way out.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from production_kernel.db.engine import session_scope
from production_kernel.domain.dtos import (
    ActionKind,
    ArticleSpec,
    ArticleStatus,
    AuditEventRecord,
    OrderStatus,
    Priority,
    StatusChangeResult,
)
from production_kernel.domain.floors import CATALOG, Floor, parse_routing
from production_kernel.domain.ledger import require_quantity
from production_kernel.domain.progress import derive_order_status
from production_kernel.exceptions import (
    InvalidStatusChangeError,
    OrderNotFoundError,
    ValidationError,
)
from production_kernel.logging_config import LogContext, get_logger
from production_kernel.models.production import (
    ArticleModel,
    FloorLedgerModel,
    ProductionOrderModel,
)
from production_kernel.services.auditor_service import AuditorService
from production_kernel.services.base import ArticleCommandService, require_identity

logger = get_logger("services.order")

_MAX_CODE_LENGTH = 50


@dataclass(frozen=True)
class PlacedOrder:
    """Identifiers assigned when an order is placed."""

    order_id: UUID
    order_number: str
    article_ids: tuple[UUID, ...]


def _require_code(field: str, value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, value, "must be a non-empty string")
    code = value.strip()
    if len(code) > _MAX_CODE_LENGTH:
        raise ValidationError(field, value, f"must be at most {_MAX_CODE_LENGTH} characters")
    return code


def _parse_priority(value: Priority | str) -> Priority:
    if isinstance(value, Priority):
        return value
    try:
        return Priority(str(value).strip().lower())
    except ValueError:
        raise ValidationError("priority", value, "unknown priority") from None


class OrderService(ArticleCommandService):
    """Order intake, order status and article lifecycle changes."""

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def create_order(
        self,
        order_number: str,
        articles: Sequence[ArticleSpec],
        actor_user_id: UUID,
        floor_supervisor_id: UUID,
        priority: Priority | str = Priority.MEDIUM,
        customer: str | None = None,
        remarks: str | None = None,
    ) -> PlacedOrder:
        """
        Place an order and open every article's ledgers.

        Raises:
            ValidationError: on a blank or duplicate order number, an empty
                article list, an unknown routing or priority, or a planned
                quantity outside 1..max_planned_quantity.
        """
        require_identity(actor_user_id, floor_supervisor_id)
        number = _require_code("order_number", order_number)
        order_priority = _parse_priority(priority)
        if not articles:
            raise ValidationError("articles", articles, "an order needs at least one article")

        prepared = []
        for spec in articles:
            planned = require_quantity("planned_quantity", spec.planned_quantity, positive=True)
            if planned > self._config.max_planned_quantity:
                raise ValidationError(
                    "planned_quantity", planned,
                    f"must not exceed {self._config.max_planned_quantity}",
                )
            prepared.append((
                spec,
                _require_code("article_number", spec.article_number),
                parse_routing(spec.routing),
                _parse_priority(spec.priority),
            ))

        records: list[AuditEventRecord] = []
        article_ids: list[UUID] = []
        try:
            with session_scope(self._session_factory) as session:
                order = ProductionOrderModel(
                    order_number=number,
                    customer=customer,
                    priority=order_priority.value,
                    remarks=remarks,
                    created_by_id=actor_user_id,
                )
                session.add(order)
                session.flush()
                order_id = order.id

                auditor = AuditorService(session, self._clock)
                for line_number, (spec, article_number, routing, article_priority) in enumerate(
                    prepared, start=1,
                ):
                    article = ArticleModel(
                        order_id=order_id,
                        line_number=line_number,
                        article_number=article_number,
                        description=spec.description,
                        planned_quantity=spec.planned_quantity,
                        routing=routing.value,
                        priority=article_priority.value,
                        status=ArticleStatus.PENDING.value,
                        frontier_floor=Floor.KNITTING.value,
                        last_event_seq=0,
                        created_by_id=actor_user_id,
                    )
                    article.ledgers = [
                        FloorLedgerModel(
                            floor=floor.value,
                            received=spec.planned_quantity if floor is Floor.KNITTING else 0,
                            created_by_id=actor_user_id,
                        )
                        for floor in CATALOG
                    ]
                    session.add(article)
                    session.flush()

                    event = auditor.record(
                        article,
                        ActionKind.ARTICLE_CREATED,
                        actor_user_id,
                        floor_supervisor_id,
                        floor=Floor.KNITTING,
                        quantity_delta=spec.planned_quantity,
                        remarks=remarks,
                        payload={
                            "article_number": article_number,
                            "planned_quantity": spec.planned_quantity,
                            "routing": routing.value,
                            "priority": article_priority.value,
                        },
                    )
                    records.append(event.to_record())
                    article_ids.append(article.id)
        except IntegrityError as exc:
            logger.warning("create_order_rejected", extra={"order_number": number})
            raise ValidationError("order_number", number, "already exists") from exc

        for record in records:
            self._emitter.publish(record)

        logger.info(
            "order_created",
            extra={
                "order_id": str(order_id),
                "order_number": number,
                "article_count": len(article_ids),
            },
        )
        return PlacedOrder(
            order_id=order_id,
            order_number=number,
            article_ids=tuple(article_ids),
        )

    # ------------------------------------------------------------------
    # Order status
    # ------------------------------------------------------------------

    def get_order_status(self, order_id: UUID) -> OrderStatus:
        """Status of the order's least-advanced live article."""
        session = self._session_factory()
        try:
            order = session.get(ProductionOrderModel, order_id)
            if order is None:
                raise OrderNotFoundError(str(order_id))
            statuses = session.execute(
                select(ArticleModel.status).where(ArticleModel.order_id == order_id)
            ).scalars()
            return derive_order_status(ArticleStatus(s) for s in statuses)
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Article lifecycle
    # ------------------------------------------------------------------

    def _change_status(
        self,
        operation: str,
        article_id: UUID,
        allowed_from: frozenset[ArticleStatus],
        to_status: ArticleStatus | None,
        actor_user_id: UUID,
        floor_supervisor_id: UUID,
        remarks: str | None,
    ) -> StatusChangeResult:
        def mutate(session: Session, article: ArticleModel, auditor: AuditorService):
            current = article.article_status
            target = to_status
            if target is None:
                # Resume returns to whatever the article was doing before the hold
                target = ArticleStatus(article.held_from_status or ArticleStatus.PENDING.value)
            if current not in allowed_from:
                raise InvalidStatusChangeError(str(article.id), current.value, target.value)

            article.held_from_status = (
                current.value if target is ArticleStatus.ON_HOLD else None
            )
            article.status = target.value
            article.updated_by_id = actor_user_id
            event = auditor.record(
                article,
                ActionKind.STATUS_CHANGED,
                actor_user_id,
                floor_supervisor_id,
                remarks=remarks,
                payload={"from_status": current.value, "to_status": target.value},
            )
            with LogContext.bind(order_id=str(article.order_id)):
                logger.info(
                    "article_status_changed",
                    extra={"from_status": current.value, "to_status": target.value},
                )
            result = StatusChangeResult(
                article_id=article.id,
                from_status=current,
                to_status=target,
                event_seq=event.seq,
            )
            return result, event

        return self._execute(
            operation, article_id, actor_user_id, floor_supervisor_id, mutate,
        )

    def hold_article(
        self,
        article_id: UUID,
        actor_user_id: UUID,
        floor_supervisor_id: UUID,
        remarks: str | None = None,
    ) -> StatusChangeResult:
        return self._change_status(
            "hold_article",
            article_id,
            frozenset({ArticleStatus.PENDING, ArticleStatus.IN_PROGRESS}),
            ArticleStatus.ON_HOLD,
            actor_user_id,
            floor_supervisor_id,
            remarks,
        )

    def resume_article(
        self,
        article_id: UUID,
        actor_user_id: UUID,
        floor_supervisor_id: UUID,
        remarks: str | None = None,
    ) -> StatusChangeResult:
        return self._change_status(
            "resume_article",
            article_id,
            frozenset({ArticleStatus.ON_HOLD}),
            None,
            actor_user_id,
            floor_supervisor_id,
            remarks,
        )

    def cancel_article(
        self,
        article_id: UUID,
        actor_user_id: UUID,
        floor_supervisor_id: UUID,
        remarks: str | None = None,
    ) -> StatusChangeResult:
        """Cancel an article that has not completed.  Cancellation is final."""
        return self._change_status(
            "cancel_article",
            article_id,
            frozenset({
                ArticleStatus.PENDING,
                ArticleStatus.IN_PROGRESS,
                ArticleStatus.ON_HOLD,
            }),
            ArticleStatus.CANCELLED,
            actor_user_id,
            floor_supervisor_id,
            remarks,
        )

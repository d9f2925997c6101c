"""
FloorLedgerService -- the quantity operations on an article's floor ledgers.

Responsibility
--------------
Public entry point for shop-floor mutations: recording completed work,
grading at the quality gates, reclassifying repaired pieces, moving
eligible quantity to the next floor, fixing KNITTING's defect count, and
confirming final quality.  Each call validates, mutates exactly one
article, appends exactly one audit event and refreshes the article's
progress and status.

Architecture position
---------------------
**Kernel > Services** -- imperative shell over the pure ledger
transitions in ``production_kernel.domain.ledger``.  Transaction, lock
and retry handling come from ``ArticleCommandService``.

Invariants enforced
-------------------
* Floor ledger invariants are re-validated after every transition; a
  violation aborts the whole operation.
* The frontier floor is advisory.  No operation reads it to decide
  whether a floor may be worked; any floor on the route with quantity to
  work remains workable after the frontier has moved on.
* Transfers conserve quantity: the source's available figure falls by
  exactly the amount the next floor's received figure rises.

Failure modes
-------------
* ValidationError / InvariantViolation / QuantityMismatchError /
  InvalidTransition / NotFound subclasses, with no mutation.
* OptimisticLockError when a cross-process version conflict persists.

Usage::

    service = FloorLedgerService(session_factory, clock=clock)
    service.complete_work(article_id, Floor.KNITTING, 100,
                          actor_user_id=operator, floor_supervisor_id=supervisor)
    service.transfer(article_id, Floor.KNITTING, 90,
                     actor_user_id=operator, floor_supervisor_id=supervisor,
                     batch_number="B-0007")
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from production_kernel.domain.dtos import (
    ActionKind,
    ArticleStatus,
    CompletionResult,
    InspectionResult,
    KnittingDefectsResult,
    RepairShiftResult,
    TransferResult,
)
from production_kernel.domain.floors import (
    Floor,
    ensure_in_route,
    next_floor,
    parse_floor,
)
from production_kernel.domain.ledger import FloorLedger, QualityGrades
from production_kernel.domain.progress import (
    WORKABLE_STATUSES,
    completion_ratio,
    progress_percent,
    status_after_work,
    total_completed,
)
from production_kernel.exceptions import (
    ArticleNotWorkableError,
    FinalQualityNotReadyError,
    FloorLedgerNotFoundError,
)
from production_kernel.logging_config import get_logger
from production_kernel.models.production import ArticleModel, FloorLedgerModel
from production_kernel.services.auditor_service import AuditorService
from production_kernel.services.base import ArticleCommandService

logger = get_logger("services.ledger")


class FloorLedgerService(ArticleCommandService):
    """Quantity operations on one article's floor ledgers."""

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    @staticmethod
    def _ensure_workable(article: ArticleModel) -> None:
        status = article.article_status
        if status not in WORKABLE_STATUSES:
            raise ArticleNotWorkableError(str(article.id), status.value)

    @staticmethod
    def _row(article: ArticleModel, floor: Floor) -> FloorLedgerModel:
        row = article.ledger_rows().get(floor)
        if row is None:
            raise FloorLedgerNotFoundError(str(article.id), floor.value)
        return row

    def _prepare(self, article: ArticleModel, floor: Floor) -> FloorLedgerModel:
        self._ensure_workable(article)
        ensure_in_route(floor, article.routing_attribute)
        return self._row(article, floor)

    def _refresh_article(self, article: ArticleModel, actor_user_id: UUID) -> ArticleStatus:
        """Recompute progress and lifecycle status after a quantity change."""
        ledgers = article.ledger_dtos()
        now = self._clock.now()
        previous = article.article_status
        status = status_after_work(previous, article.planned_quantity, ledgers)

        if article.started_at is None:
            article.started_at = now
        if status is not previous:
            article.status = status.value
            if status is ArticleStatus.COMPLETED:
                article.completed_at = now
            logger.info(
                "article_status_changed",
                extra={"from_status": previous.value, "to_status": status.value},
            )

        done = total_completed(ledgers.values())
        article.progress_percent = progress_percent(
            article.planned_quantity, done, self._config.progress_decimal_places,
        )
        article.progress_ratio = completion_ratio(article.planned_quantity, done)
        article.updated_by_id = actor_user_id
        return status

    # ------------------------------------------------------------------
    # Work completion
    # ------------------------------------------------------------------

    def complete_work(
        self,
        article_id: UUID,
        floor: Floor | str,
        additional_quantity: int,
        actor_user_id: UUID,
        floor_supervisor_id: UUID,
        remarks: str | None = None,
        machine_id: str | None = None,
        shift_id: str | None = None,
    ) -> CompletionResult:
        """
        Add ``additional_quantity`` finished pieces to ``floor``.

        KNITTING accepts any non-negative amount (overproduction).  Other
        standard floors may not complete more than they received.
        Quality-gated floors record completion through ``quality_inspect``.
        """
        target = parse_floor(floor)

        def mutate(session: Session, article: ArticleModel, auditor: AuditorService):
            row = self._prepare(article, target)
            before = row.to_dto()
            after = before.complete(additional_quantity)
            row.apply(after, actor_user_id)
            status = self._refresh_article(article, actor_user_id)
            event = auditor.record(
                article,
                ActionKind.WORK_COMPLETED,
                actor_user_id,
                floor_supervisor_id,
                floor=target,
                quantity_delta=additional_quantity,
                remarks=remarks,
                machine_id=machine_id,
                shift_id=shift_id,
                payload={
                    "previous_completed": before.completed,
                    "new_completed": after.completed,
                },
            )
            result = CompletionResult(
                article_id=article.id,
                floor=target,
                previous_completed=before.completed,
                new_completed=after.completed,
                delta=additional_quantity,
                available_to_transfer=after.available_to_transfer,
                event_seq=event.seq,
                article_status=status,
            )
            return result, event

        return self._execute(
            "complete_work", article_id, actor_user_id, floor_supervisor_id, mutate,
            floor=target.value, quantity=additional_quantity,
        )

    # ------------------------------------------------------------------
    # Quality split and repair
    # ------------------------------------------------------------------

    def quality_inspect(
        self,
        article_id: UUID,
        floor: Floor | str,
        inspected_quantity: int,
        m1: int,
        m2: int,
        m3: int,
        m4: int,
        actor_user_id: UUID,
        floor_supervisor_id: UUID,
        remarks: str | None = None,
    ) -> InspectionResult:
        """
        Grade ``inspected_quantity`` pieces on CHECKING or FINAL_CHECKING.

        M1 becomes transferable at once, M2 waits for repair, M3 and M4
        stay on this floor for good.
        """
        target = parse_floor(floor)
        grades = QualityGrades(m1=m1, m2=m2, m3=m3, m4=m4)

        def mutate(session: Session, article: ArticleModel, auditor: AuditorService):
            row = self._prepare(article, target)
            after = row.to_dto().inspect(inspected_quantity, grades)
            row.apply(after, actor_user_id)
            self._refresh_article(article, actor_user_id)
            event = auditor.record(
                article,
                ActionKind.QUALITY_INSPECTED,
                actor_user_id,
                floor_supervisor_id,
                floor=target,
                quantity_delta=inspected_quantity,
                remarks=remarks,
                payload={"m1": m1, "m2": m2, "m3": m3, "m4": m4},
            )
            result = InspectionResult(
                article_id=article.id,
                floor=target,
                inspected_quantity=inspected_quantity,
                grades=after.grades,
                completed=after.completed,
                m2_pending=after.m2_review_qty,
                available_to_transfer=after.available_to_transfer,
                event_seq=event.seq,
            )
            return result, event

        return self._execute(
            "quality_inspect", article_id, actor_user_id, floor_supervisor_id, mutate,
            floor=target.value, quantity=inspected_quantity,
        )

    def repair_shift(
        self,
        article_id: UUID,
        floor: Floor | str,
        from_m2: int,
        to_m1: int,
        to_m3: int,
        to_m4: int,
        actor_user_id: UUID,
        floor_supervisor_id: UUID,
        remarks: str | None = None,
    ) -> RepairShiftResult:
        """Reclassify ``from_m2`` pending-review pieces into M1, M3 and M4."""
        target = parse_floor(floor)

        def mutate(session: Session, article: ArticleModel, auditor: AuditorService):
            row = self._prepare(article, target)
            after = row.to_dto().shift_repair(from_m2, to_m1, to_m3, to_m4)
            row.apply(after, actor_user_id)
            if remarks:
                row.repair_remarks = remarks
            self._refresh_article(article, actor_user_id)
            event = auditor.record(
                article,
                ActionKind.REPAIR_SHIFTED,
                actor_user_id,
                floor_supervisor_id,
                floor=target,
                quantity_delta=from_m2,
                remarks=remarks,
                payload={
                    "from_m2": from_m2,
                    "to_m1": to_m1,
                    "to_m3": to_m3,
                    "to_m4": to_m4,
                },
            )
            result = RepairShiftResult(
                article_id=article.id,
                floor=target,
                from_m2=from_m2,
                to_m1=to_m1,
                to_m3=to_m3,
                to_m4=to_m4,
                m2_balance=after.m2_review_qty,
                available_to_transfer=after.available_to_transfer,
                event_seq=event.seq,
            )
            return result, event

        return self._execute(
            "repair_shift", article_id, actor_user_id, floor_supervisor_id, mutate,
            floor=target.value, quantity=from_m2,
        )

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    def transfer(
        self,
        article_id: UUID,
        from_floor: Floor | str,
        quantity: int,
        actor_user_id: UUID,
        floor_supervisor_id: UUID,
        remarks: str | None = None,
        batch_number: str | None = None,
    ) -> TransferResult:
        """
        Move ``quantity`` eligible pieces from ``from_floor`` to the next floor on the route.

        ``batch_number`` is an opaque traceability tag stored on the audit
        event.  The article's frontier moves to the receiving floor.
        """
        source = parse_floor(from_floor)

        def mutate(session: Session, article: ArticleModel, auditor: AuditorService):
            self._ensure_workable(article)
            target = next_floor(source, article.routing_attribute)
            source_row = self._row(article, source)
            target_row = self._row(article, target)

            source_after = source_row.to_dto().transfer_out(quantity)
            target_after = target_row.to_dto().receive(quantity)
            source_row.apply(source_after, actor_user_id)
            target_row.apply(target_after, actor_user_id)
            article.frontier_floor = target.value
            self._refresh_article(article, actor_user_id)

            event = auditor.record(
                article,
                ActionKind.TRANSFERRED,
                actor_user_id,
                floor_supervisor_id,
                floor=source,
                quantity_delta=quantity,
                remarks=remarks,
                batch_number=batch_number,
                payload={"to_floor": target.value, "batch_number": batch_number},
            )
            result = TransferResult(
                article_id=article.id,
                from_floor=source,
                to_floor=target,
                quantity=quantity,
                from_available_after=source_after.available_to_transfer,
                to_received_after=target_after.received,
                batch_number=batch_number,
                event_seq=event.seq,
            )
            return result, event

        return self._execute(
            "transfer", article_id, actor_user_id, floor_supervisor_id, mutate,
            floor=source.value, quantity=quantity, batch_number=batch_number,
        )

    # ------------------------------------------------------------------
    # Explicit absolute-replace and confirmation operations
    # ------------------------------------------------------------------

    def set_knitting_defects(
        self,
        article_id: UUID,
        m4_quantity: int,
        actor_user_id: UUID,
        floor_supervisor_id: UUID,
        remarks: str | None = None,
        machine_id: str | None = None,
        shift_id: str | None = None,
    ) -> KnittingDefectsResult:
        """
        Replace KNITTING's major-defect count with ``m4_quantity``.

        Unlike every other operation this is an absolute value, not an
        increment.  Pieces already transferred cannot be re-declared
        defective.
        """

        def mutate(session: Session, article: ArticleModel, auditor: AuditorService):
            row = self._prepare(article, Floor.KNITTING)
            before = row.to_dto()
            after = before.set_knitting_defects(m4_quantity)
            row.apply(after, actor_user_id)
            self._refresh_article(article, actor_user_id)
            event = auditor.record(
                article,
                ActionKind.KNITTING_DEFECTS_SET,
                actor_user_id,
                floor_supervisor_id,
                floor=Floor.KNITTING,
                quantity_delta=after.m4_major_defect_qty - before.m4_major_defect_qty,
                remarks=remarks,
                machine_id=machine_id,
                shift_id=shift_id,
                payload={
                    "previous_m4": before.m4_major_defect_qty,
                    "new_m4": after.m4_major_defect_qty,
                },
            )
            result = KnittingDefectsResult(
                article_id=article.id,
                previous_m4=before.m4_major_defect_qty,
                new_m4=after.m4_major_defect_qty,
                available_to_transfer=after.available_to_transfer,
                event_seq=event.seq,
            )
            return result, event

        return self._execute(
            "set_knitting_defects", article_id, actor_user_id, floor_supervisor_id, mutate,
            floor=Floor.KNITTING.value, quantity=m4_quantity,
        )

    def confirm_final_quality(
        self,
        article_id: UUID,
        actor_user_id: UUID,
        floor_supervisor_id: UUID,
        remarks: str | None = None,
    ) -> bool:
        """
        Mark the article's final quality as confirmed.

        Requires FINAL_CHECKING to have received pieces, every received
        piece to be graded, and nothing left pending repair.
        """

        def mutate(session: Session, article: ArticleModel, auditor: AuditorService):
            row = self._prepare(article, Floor.FINAL_CHECKING)
            ledger: FloorLedger = row.to_dto()
            if (
                ledger.received == 0
                or ledger.inspected < ledger.received
                or ledger.m2_review_qty > 0
            ):
                raise FinalQualityNotReadyError(
                    ledger.received, ledger.inspected, ledger.m2_review_qty,
                )
            article.final_quality_confirmed = True
            article.updated_by_id = actor_user_id
            event = auditor.record(
                article,
                ActionKind.FINAL_QUALITY_CONFIRMED,
                actor_user_id,
                floor_supervisor_id,
                floor=Floor.FINAL_CHECKING,
                remarks=remarks,
                payload={"m1": ledger.m1_good_qty, "inspected": ledger.inspected},
            )
            return True, event

        return self._execute(
            "confirm_final_quality", article_id, actor_user_id, floor_supervisor_id, mutate,
        )

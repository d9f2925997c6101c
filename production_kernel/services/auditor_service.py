"""
AuditorService -- per-article sequenced, hash-chained audit events.

Responsibility:
    Appends exactly one ``ArticleAuditEvent`` per successful mutation,
    numbered by the article's own monotonic sequence and chained to the
    article's previous event by hash.  Provides chain validation and the
    ordered event trace used by replay.

Architecture position:
    Kernel > Services -- imperative shell, called by the command services
    inside the article's transaction.

Invariants enforced:
    - seq = article.last_event_seq + 1, advanced on the locked, versioned
      article row; never derived from MAX(seq)+1.
    - hash = H(article_id | seq | action | quantity_delta | payload_hash | prev_hash).
    - Events are append-only (ORM listeners in db/immutability.py).

Failure modes:
    - AuditChainBrokenError from validate_chain() on any recomputed
      mismatch or a broken prev_hash link.
    - StaleDataError at flush when another process advanced the article
      first (handled by the caller's retry loop).
"""

from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from production_kernel.domain.clock import Clock, SystemClock
from production_kernel.domain.dtos import ActionKind, AuditEventRecord
from production_kernel.domain.floors import Floor
from production_kernel.exceptions import AuditChainBrokenError
from production_kernel.logging_config import get_logger
from production_kernel.models.audit_event import ArticleAuditEvent
from production_kernel.models.production import ArticleModel
from production_kernel.utils.hashing import hash_audit_event, hash_payload

logger = get_logger("services.auditor")

HASHED_ATTRIBUTES = (
    "order_id",
    "floor",
    "actor_user_id",
    "floor_supervisor_id",
    "remarks",
    "machine_id",
    "shift_id",
    "batch_number",
)


@dataclass(frozen=True)
class AuditTrace:
    """Every audit event of one article in sequence order."""

    article_id: UUID
    entries: tuple[AuditEventRecord, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def last_seq(self) -> int:
        return self.entries[-1].seq if self.entries else 0

    def of_kind(self, kind: ActionKind) -> tuple[AuditEventRecord, ...]:
        return tuple(e for e in self.entries if e.action_kind is kind)


def traced_attributes(event: ArticleAuditEvent) -> dict[str, Any]:
    """Event columns sealed into the hash besides seq, action, quantity and payload."""
    return {name: getattr(event, name) for name in HASHED_ATTRIBUTES}


class AuditorService:
    """
    Creates and validates per-article audit events.

    Does NOT commit; the calling command service owns the transaction.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _previous_hash(self, article_id: UUID, seq: int) -> str | None:
        if seq <= 1:
            return None
        return self._session.execute(
            select(ArticleAuditEvent.hash).where(
                ArticleAuditEvent.article_id == article_id,
                ArticleAuditEvent.seq == seq - 1,
            )
        ).scalar_one()

    def record(
        self,
        article: ArticleModel,
        action: ActionKind,
        actor_user_id: UUID,
        floor_supervisor_id: UUID | None,
        *,
        floor: Floor | None = None,
        quantity_delta: int = 0,
        remarks: str | None = None,
        machine_id: str | None = None,
        shift_id: str | None = None,
        batch_number: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> ArticleAuditEvent:
        """
        Append the article's next audit event and advance its sequence.

        Postconditions:
            - ``article.last_event_seq`` equals the new event's seq.
            - The event is flushed in the caller's transaction.
        """
        seq = article.last_event_seq + 1
        article.last_event_seq = seq

        payload_data = dict(payload or {})
        payload_hash = hash_payload(payload_data)
        prev_hash = self._previous_hash(article.id, seq)

        event = ArticleAuditEvent(
            article_id=article.id,
            order_id=article.order_id,
            seq=seq,
            floor=floor.value if floor else None,
            action_kind=action.value,
            quantity_delta=quantity_delta,
            actor_user_id=actor_user_id,
            floor_supervisor_id=floor_supervisor_id,
            remarks=remarks,
            machine_id=machine_id,
            shift_id=shift_id,
            batch_number=batch_number,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )
        event.hash = hash_audit_event(
            article_id=article.id,
            seq=seq,
            action=action.value,
            quantity_delta=quantity_delta,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            attributes=traced_attributes(event),
        )
        self._session.add(event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "article_id": str(article.id),
                "action_kind": action.value,
                "seq": seq,
                "quantity_delta": quantity_delta,
            },
        )
        return event

    def _events(self, article_id: UUID) -> list[ArticleAuditEvent]:
        return list(
            self._session.execute(
                select(ArticleAuditEvent)
                .where(ArticleAuditEvent.article_id == article_id)
                .order_by(ArticleAuditEvent.seq)
            ).scalars()
        )

    def trace(self, article_id: UUID) -> AuditTrace:
        return AuditTrace(
            article_id=article_id,
            entries=tuple(e.to_record() for e in self._events(article_id)),
        )

    def validate_chain(self, article_id: UUID) -> bool:
        """
        Recompute every hash of the article's chain.

        Raises:
            AuditChainBrokenError: at the first event whose stored hash or
                prev_hash link does not match.
        """
        prev_hash: str | None = None
        expected_seq = 1
        for event in self._events(article_id):
            if event.seq != expected_seq or event.prev_hash != prev_hash:
                raise AuditChainBrokenError(
                    str(article_id), event.seq, str(prev_hash), str(event.prev_hash),
                )
            payload_hash = hash_payload(event.payload or {})
            expected = hash_audit_event(
                article_id=event.article_id,
                seq=event.seq,
                action=event.action_kind,
                quantity_delta=event.quantity_delta,
                payload_hash=payload_hash,
                prev_hash=prev_hash,
                attributes=traced_attributes(event),
            )
            if payload_hash != event.payload_hash or expected != event.hash:
                logger.error(
                    "audit_chain_broken",
                    extra={"article_id": str(article_id), "seq": event.seq},
                )
                raise AuditChainBrokenError(str(article_id), event.seq, expected, event.hash)
            prev_hash = event.hash
            expected_seq += 1

        logger.debug(
            "audit_chain_valid",
            extra={"article_id": str(article_id), "events": expected_seq - 1},
        )
        return True

"""
Module: production_kernel.models.audit_event
Responsibility: Append-only audit trail of every mutation of an article.

Guarantees:
    - (article_id, seq) is unique; seq starts at 1 and is contiguous per
      article.  Ordering is by seq, never by occurred_at.
    - hash = H(article_id | seq | action | quantity_delta | payload_hash | prev_hash),
      where prev_hash is the hash of the same article's previous event.
    - Rows are never updated or deleted (db/immutability.py).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from production_kernel.db.base import Base, UUIDString
from production_kernel.domain.dtos import ActionKind, AuditEventRecord
from production_kernel.domain.floors import Floor


class ArticleAuditEvent(Base):
    """One immutable, hash-chained audit event for one article."""

    __tablename__ = "article_audit_events"

    __table_args__ = (
        UniqueConstraint("article_id", "seq", name="uq_article_audit_seq"),
        Index("idx_article_audit_action", "action_kind"),
        Index("idx_article_audit_order", "order_id"),
    )

    article_id: Mapped[UUID] = mapped_column(ForeignKey("articles.id"))
    order_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    seq: Mapped[int] = mapped_column(nullable=False)

    floor: Mapped[str | None] = mapped_column(String(20), nullable=True)
    action_kind: Mapped[str] = mapped_column(String(40), nullable=False)
    quantity_delta: Mapped[int] = mapped_column(default=0)

    actor_user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    floor_supervisor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    machine_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    shift_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    batch_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None

    def to_record(self) -> AuditEventRecord:
        return AuditEventRecord(
            seq=self.seq,
            article_id=self.article_id,
            order_id=self.order_id,
            floor=Floor(self.floor) if self.floor else None,
            action_kind=ActionKind(self.action_kind),
            quantity_delta=self.quantity_delta,
            actor_user_id=self.actor_user_id,
            floor_supervisor_id=self.floor_supervisor_id,
            occurred_at=self.occurred_at,
            remarks=self.remarks,
            machine_id=self.machine_id,
            shift_id=self.shift_id,
            batch_number=self.batch_number,
            payload=dict(self.payload or {}),
            hash=self.hash,
        )

    def __repr__(self) -> str:
        return f"<ArticleAuditEvent {self.article_id}#{self.seq} {self.action_kind}>"

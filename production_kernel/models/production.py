"""
Module: production_kernel.models.production
Responsibility: ORM persistence for production orders, their articles, and
    the per-(article, floor) quantity ledgers.
Architecture position: Kernel > Models.  Inherits from TrackedBase.  Maps
    to the frozen domain values in ``production_kernel.domain``.

Invariants enforced:
    - One ledger row per (article, floor), for every cataloged floor
      (uq_floor_ledger_article_floor).  Floors off the article's route keep
      an all-zero row.
    - ArticleModel.version is the mapper version_id_col: every flush of an
      article UPDATEs ``WHERE version = <loaded>``, so a concurrent writer
      from another process surfaces as StaleDataError.
    - ArticleModel.last_event_seq is the per-article audit sequence counter,
      advanced under the same row version as the ledger change.
    - Enum fields are stored as String for portability and readability.

Failure modes:
    - IntegrityError on duplicate order number (uq_production_order_number).
    - IntegrityError on a second ledger row for the same (article, floor).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from production_kernel.db.base import TrackedBase
from production_kernel.domain.dtos import ArticleStatus, Priority
from production_kernel.domain.floors import Floor, RoutingAttribute
from production_kernel.domain.ledger import FloorLedger


class ProductionOrderModel(TrackedBase):
    """
    A customer order grouping one or more articles.

    The order keeps no status column of its own: status is always derived
    from its articles (see domain.progress.derive_order_status).
    """

    __tablename__ = "production_orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_production_order_number"),
    )

    order_number: Mapped[str] = mapped_column(String(50))
    customer: Mapped[str | None] = mapped_column(String(200), nullable=True)
    priority: Mapped[str] = mapped_column(String(20), default=Priority.MEDIUM.value)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    articles: Mapped[list["ArticleModel"]] = relationship(
        back_populates="order",
        lazy="selectin",
        order_by="ArticleModel.line_number",
    )

    def __repr__(self) -> str:
        return f"<ProductionOrder {self.order_number}>"


class ArticleModel(TrackedBase):
    """One manufacturing line item and its lifecycle state."""

    __tablename__ = "articles"

    __table_args__ = (
        UniqueConstraint("order_id", "line_number", name="uq_article_order_line"),
        Index("idx_article_order", "order_id"),
        Index("idx_article_status", "status"),
    )

    order_id: Mapped[UUID] = mapped_column(ForeignKey("production_orders.id"))
    line_number: Mapped[int] = mapped_column()
    article_number: Mapped[str] = mapped_column(String(50))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    planned_quantity: Mapped[int] = mapped_column()
    routing: Mapped[str] = mapped_column(String(20))
    priority: Mapped[str] = mapped_column(String(20), default=Priority.MEDIUM.value)

    status: Mapped[str] = mapped_column(String(20), default=ArticleStatus.PENDING.value)
    # Status to restore when an on-hold article is resumed
    held_from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Advisory UI hint only; never consulted as an access gate
    frontier_floor: Mapped[str] = mapped_column(String(20), default=Floor.KNITTING.value)

    final_quality_confirmed: Mapped[bool] = mapped_column(Boolean, default=False)
    progress_percent: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    progress_ratio: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    last_event_seq: Mapped[int] = mapped_column(default=0)
    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    order: Mapped[ProductionOrderModel] = relationship(back_populates="articles")

    ledgers: Mapped[list["FloorLedgerModel"]] = relationship(
        back_populates="article",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def routing_attribute(self) -> RoutingAttribute:
        return RoutingAttribute(self.routing)

    @property
    def article_status(self) -> ArticleStatus:
        return ArticleStatus(self.status)

    def ledger_rows(self) -> dict[Floor, "FloorLedgerModel"]:
        return {Floor(row.floor): row for row in self.ledgers}

    def ledger_dtos(self) -> dict[Floor, FloorLedger]:
        return {floor: row.to_dto() for floor, row in self.ledger_rows().items()}

    def __repr__(self) -> str:
        return f"<Article {self.article_number} {self.status} v{self.version}>"


class FloorLedgerModel(TrackedBase):
    """
    Quantities of one article on one floor.

    Maps to: production_kernel.domain.ledger.FloorLedger (frozen dataclass).
    """

    __tablename__ = "floor_ledgers"

    __table_args__ = (
        UniqueConstraint("article_id", "floor", name="uq_floor_ledger_article_floor"),
        Index("idx_floor_ledger_floor", "floor"),
    )

    article_id: Mapped[UUID] = mapped_column(ForeignKey("articles.id"))
    floor: Mapped[str] = mapped_column(String(20))

    received: Mapped[int] = mapped_column(default=0)
    completed: Mapped[int] = mapped_column(default=0)
    transferred_out: Mapped[int] = mapped_column(default=0)
    m1_good_qty: Mapped[int] = mapped_column(default=0)
    m2_review_qty: Mapped[int] = mapped_column(default=0)
    m3_minor_defect_qty: Mapped[int] = mapped_column(default=0)
    m4_major_defect_qty: Mapped[int] = mapped_column(default=0)

    # Repair notes captured on the quality-gated floors
    repair_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    article: Mapped[ArticleModel] = relationship(back_populates="ledgers")

    def to_dto(self) -> FloorLedger:
        return FloorLedger(
            floor=Floor(self.floor),
            received=self.received,
            completed=self.completed,
            transferred_out=self.transferred_out,
            m1_good_qty=self.m1_good_qty,
            m2_review_qty=self.m2_review_qty,
            m3_minor_defect_qty=self.m3_minor_defect_qty,
            m4_major_defect_qty=self.m4_major_defect_qty,
        )

    def apply(self, ledger: FloorLedger, actor_id: UUID) -> None:
        """Copy a validated domain ledger back onto this row."""
        if ledger.floor.value != self.floor:
            raise ValueError(f"Ledger for {ledger.floor.value} applied to {self.floor} row")
        self.received = ledger.received
        self.completed = ledger.completed
        self.transferred_out = ledger.transferred_out
        self.m1_good_qty = ledger.m1_good_qty
        self.m2_review_qty = ledger.m2_review_qty
        self.m3_minor_defect_qty = ledger.m3_minor_defect_qty
        self.m4_major_defect_qty = ledger.m4_major_defect_qty
        self.updated_by_id = actor_id

    def __repr__(self) -> str:
        return f"<FloorLedger {self.floor} r={self.received} c={self.completed} t={self.transferred_out}>"

"""
Domain DTOs -- immutable values crossing the service boundary.

Operation results are what an HTTP or CLI adapter turns into a
response; ``AuditEventRecord`` is the committed event handed to
downstream sinks and to replay.  None of these types touch the ORM.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from production_kernel.domain.floors import Floor, RoutingAttribute
from production_kernel.domain.ledger import QualityGrades


class Priority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ArticleStatus(str, Enum):
    """Lifecycle of one article (and, derived, of its order)."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"


# Orders share the article lifecycle vocabulary.
OrderStatus = ArticleStatus


class ActionKind(str, Enum):
    """Kinds of audit events one article can accumulate."""

    ARTICLE_CREATED = "ArticleCreated"
    WORK_COMPLETED = "WorkCompleted"
    QUALITY_INSPECTED = "QualityInspected"
    REPAIR_SHIFTED = "RepairShifted"
    TRANSFERRED = "Transferred"
    KNITTING_DEFECTS_SET = "KnittingDefectsSet"
    FINAL_QUALITY_CONFIRMED = "FinalQualityConfirmed"
    STATUS_CHANGED = "StatusChanged"


@dataclass(frozen=True)
class ArticleSpec:
    """One line of a new production order."""

    article_number: str
    planned_quantity: int
    routing: RoutingAttribute = RoutingAttribute.AUTO
    priority: Priority = Priority.MEDIUM
    description: str | None = None


@dataclass(frozen=True)
class AuditEventRecord:
    """A committed, immutable audit event for one article."""

    seq: int
    article_id: UUID
    order_id: UUID | None
    floor: Floor | None
    action_kind: ActionKind
    quantity_delta: int
    actor_user_id: UUID
    floor_supervisor_id: UUID | None
    occurred_at: datetime
    remarks: str | None = None
    machine_id: str | None = None
    shift_id: str | None = None
    batch_number: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    hash: str | None = None


@dataclass(frozen=True)
class CompletionResult:
    article_id: UUID
    floor: Floor
    previous_completed: int
    new_completed: int
    delta: int
    available_to_transfer: int
    event_seq: int
    article_status: ArticleStatus


@dataclass(frozen=True)
class InspectionResult:
    article_id: UUID
    floor: Floor
    inspected_quantity: int
    grades: QualityGrades
    completed: int
    m2_pending: int
    available_to_transfer: int
    event_seq: int


@dataclass(frozen=True)
class RepairShiftResult:
    article_id: UUID
    floor: Floor
    from_m2: int
    to_m1: int
    to_m3: int
    to_m4: int
    m2_balance: int
    available_to_transfer: int
    event_seq: int


@dataclass(frozen=True)
class TransferResult:
    article_id: UUID
    from_floor: Floor
    to_floor: Floor
    quantity: int
    from_available_after: int
    to_received_after: int
    batch_number: str | None
    event_seq: int


@dataclass(frozen=True)
class KnittingDefectsResult:
    article_id: UUID
    previous_m4: int
    new_m4: int
    available_to_transfer: int
    event_seq: int


@dataclass(frozen=True)
class StatusChangeResult:
    article_id: UUID
    from_status: ArticleStatus
    to_status: ArticleStatus
    event_seq: int


@dataclass(frozen=True)
class FloorStatus:
    """Read model of one floor for one article."""

    floor: Floor
    in_route: bool
    is_frontier: bool
    received: int
    completed: int
    transferred_out: int
    eligible: int
    remaining_to_process: int
    available_to_transfer: int
    completion_rate: int
    grades: QualityGrades | None = None
    good_quantity: int | None = None


@dataclass(frozen=True)
class ArticleProgress:
    """
    Article completion for display and analytics.

    ``percent`` is clamped to [0, 100]; ``ratio`` is the raw
    completed/planned figure and exceeds 1 under overproduction.
    """

    article_id: UUID
    planned_quantity: int
    total_completed: int
    percent: Decimal
    ratio: Decimal
    status: ArticleStatus

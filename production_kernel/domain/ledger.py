"""
Floor Ledger -- per (article, floor) quantity record and its invariants.

Responsibility:
    Holds the received / completed / transferred-out figures of one floor
    for one article, plus the quality grades where the floor tracks them,
    and provides the pure state transitions the ledger service applies.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Transitions return
    a NEW ``FloorLedger``; nothing here touches a session.

Invariants enforced (re-validated after every transition):
    - Every figure is a non-negative integer.
    - Non-KNITTING floors: completed <= received.
    - transferred_out <= eligible <= completed, where eligible is
        * completed            on standard floors,
        * m1                   on quality-gated floors,
        * completed - m4       on KNITTING (overproduction allowed).
    - Quality-gated floors: m1 + m2 + m3 + m4 == completed.
    - KNITTING tracks only m4 (m4 <= completed); standard floors carry
      no grades at all.

Failure modes:
    - ValidationError for malformed input (negative, non-integer).
    - InvariantViolation subclasses for requests the ledger cannot honour.
    - QuantityMismatchError subclasses for grade and repair arithmetic.
    - FloorOperationNotAllowedError when a transition does not apply to
      the floor kind.

Two distinct "remaining" figures are exposed and never merged:
``remaining_to_process`` (received but not yet worked) and
``available_to_transfer`` (worked, eligible, not yet forwarded).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any

from production_kernel.domain.floors import Floor, FloorKind, floor_kind
from production_kernel.exceptions import (
    FloorOperationNotAllowedError,
    GradeSumMismatchError,
    InsufficientAvailableError,
    InsufficientReviewQuantityError,
    KnittingDefectsExceedEligibleError,
    LedgerInvariantError,
    NonPositiveQuantityError,
    OverCompletionError,
    OverInspectionError,
    RepairShiftMismatchError,
    ValidationError,
)


def require_quantity(field: str, value: Any, *, positive: bool = False) -> int:
    """Return ``value`` if it is a non-negative (or positive) int, else raise ValidationError."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, value, "must be an integer")
    if positive and value <= 0:
        raise NonPositiveQuantityError(field, value)
    if value < 0:
        raise ValidationError(field, value, "must not be negative")
    return value


@dataclass(frozen=True)
class QualityGrades:
    """Grade split of one inspection or one repair shift."""

    m1: int = 0
    m2: int = 0
    m3: int = 0
    m4: int = 0

    @property
    def total(self) -> int:
        return self.m1 + self.m2 + self.m3 + self.m4


@dataclass(frozen=True)
class FloorLedger:
    """Quantities of one article on one floor."""

    floor: Floor
    received: int = 0
    completed: int = 0
    transferred_out: int = 0
    m1_good_qty: int = 0
    m2_review_qty: int = 0
    m3_minor_defect_qty: int = 0
    m4_major_defect_qty: int = 0

    @classmethod
    def opened(cls, floor: Floor, received: int = 0) -> FloorLedger:
        return cls(floor=floor, received=received)

    # ------------------------------------------------------------------
    # Derived figures
    # ------------------------------------------------------------------

    @property
    def kind(self) -> FloorKind:
        return floor_kind(self.floor)

    @property
    def inspected(self) -> int:
        """Quantity already graded on a quality-gated floor."""
        return (
            self.m1_good_qty
            + self.m2_review_qty
            + self.m3_minor_defect_qty
            + self.m4_major_defect_qty
        )

    @property
    def eligible(self) -> int:
        match self.kind:
            case FloorKind.KNITTING:
                return self.completed - self.m4_major_defect_qty
            case FloorKind.QUALITY_GATED:
                return self.m1_good_qty
            case _:
                return self.completed

    @property
    def remaining_to_process(self) -> int:
        return max(0, self.received - self.completed)

    @property
    def available_to_transfer(self) -> int:
        return max(0, self.eligible - self.transferred_out)

    @property
    def completion_rate(self) -> int:
        """Whole-number percentage of received quantity completed (0 when nothing received)."""
        if self.received <= 0:
            return 0
        return round(self.completed / self.received * 100)

    @property
    def grades(self) -> QualityGrades:
        return QualityGrades(
            m1=self.m1_good_qty,
            m2=self.m2_review_qty,
            m3=self.m3_minor_defect_qty,
            m4=self.m4_major_defect_qty,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["floor"] = self.floor.value
        return data

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def violations(self) -> list[tuple[str, str]]:
        """Return ``(rule, detail)`` for every invariant this ledger breaks."""
        found: list[tuple[str, str]] = []
        figures = {
            "received": self.received,
            "completed": self.completed,
            "transferred_out": self.transferred_out,
            "m1_good_qty": self.m1_good_qty,
            "m2_review_qty": self.m2_review_qty,
            "m3_minor_defect_qty": self.m3_minor_defect_qty,
            "m4_major_defect_qty": self.m4_major_defect_qty,
        }
        for name, value in figures.items():
            if value < 0:
                found.append(("non_negative", f"{name}={value}"))

        kind = self.kind
        if kind is not FloorKind.KNITTING and self.completed > self.received:
            found.append((
                "completed_within_received",
                f"completed={self.completed} > received={self.received}",
            ))
        if kind is FloorKind.QUALITY_GATED and self.inspected != self.completed:
            found.append((
                "grades_sum_to_completed",
                f"grades={self.inspected} != completed={self.completed}",
            ))
        if kind is FloorKind.KNITTING and (
            self.m1_good_qty or self.m2_review_qty or self.m3_minor_defect_qty
        ):
            found.append(("knitting_tracks_only_m4", "m1/m2/m3 must be zero"))
        if kind is FloorKind.STANDARD and self.inspected:
            found.append(("standard_floor_has_no_grades", f"grades={self.inspected}"))
        if self.eligible > self.completed or self.eligible < 0:
            found.append((
                "eligible_within_completed",
                f"eligible={self.eligible} completed={self.completed}",
            ))
        if self.transferred_out > self.eligible:
            found.append((
                "transferred_within_eligible",
                f"transferred_out={self.transferred_out} > eligible={self.eligible}",
            ))
        return found

    def validate(self) -> FloorLedger:
        """Raise LedgerInvariantError on the first broken invariant; return self otherwise."""
        problems = self.violations()
        if problems:
            rule, detail = problems[0]
            raise LedgerInvariantError(self.floor.value, rule, detail)
        return self

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def complete(self, additional_quantity: int) -> FloorLedger:
        """Add newly finished work.  Additive, never a replacement total."""
        qty = require_quantity("additional_quantity", additional_quantity)
        kind = self.kind
        if kind is FloorKind.QUALITY_GATED:
            raise FloorOperationNotAllowedError(
                self.floor.value,
                "complete_work",
                "completed quantity on a quality-gated floor is recorded by inspection",
            )
        if kind is not FloorKind.KNITTING and self.completed + qty > self.received:
            raise OverCompletionError(
                self.floor.value, self.received, self.completed, qty,
            )
        return replace(self, completed=self.completed + qty).validate()

    def inspect(self, inspected_quantity: int, grades: QualityGrades) -> FloorLedger:
        """Grade a batch into M1..M4 and count it as completed."""
        self._require_gated("quality_inspect")
        qty = require_quantity("inspected_quantity", inspected_quantity, positive=True)
        for name in ("m1", "m2", "m3", "m4"):
            require_quantity(name, getattr(grades, name))
        if grades.total != qty:
            raise GradeSumMismatchError(self.floor.value, qty, grades.total)
        if qty > self.received - self.inspected:
            raise OverInspectionError(
                self.floor.value, self.received, self.inspected, qty,
            )
        return replace(
            self,
            completed=self.completed + qty,
            m1_good_qty=self.m1_good_qty + grades.m1,
            m2_review_qty=self.m2_review_qty + grades.m2,
            m3_minor_defect_qty=self.m3_minor_defect_qty + grades.m3,
            m4_major_defect_qty=self.m4_major_defect_qty + grades.m4,
        ).validate()

    def shift_repair(self, from_m2: int, to_m1: int, to_m3: int, to_m4: int) -> FloorLedger:
        """Reclassify pending-review quantity after repair."""
        self._require_gated("repair_shift")
        from_m2 = require_quantity("from_m2", from_m2)
        to_m1 = require_quantity("to_m1", to_m1)
        to_m3 = require_quantity("to_m3", to_m3)
        to_m4 = require_quantity("to_m4", to_m4)
        shifted = to_m1 + to_m3 + to_m4
        if shifted != from_m2:
            raise RepairShiftMismatchError(self.floor.value, from_m2, shifted)
        if from_m2 > self.m2_review_qty:
            raise InsufficientReviewQuantityError(
                self.floor.value, self.m2_review_qty, from_m2,
            )
        return replace(
            self,
            m2_review_qty=self.m2_review_qty - from_m2,
            m1_good_qty=self.m1_good_qty + to_m1,
            m3_minor_defect_qty=self.m3_minor_defect_qty + to_m3,
            m4_major_defect_qty=self.m4_major_defect_qty + to_m4,
        ).validate()

    def transfer_out(self, quantity: int) -> FloorLedger:
        qty = require_quantity("quantity", quantity, positive=True)
        if qty > self.available_to_transfer:
            raise InsufficientAvailableError(
                self.floor.value, self.available_to_transfer, qty,
            )
        return replace(self, transferred_out=self.transferred_out + qty).validate()

    def receive(self, quantity: int) -> FloorLedger:
        qty = require_quantity("quantity", quantity, positive=True)
        return replace(self, received=self.received + qty).validate()

    def set_knitting_defects(self, m4_quantity: int) -> FloorLedger:
        """Replace KNITTING's major-defect figure with an absolute value."""
        if self.kind is not FloorKind.KNITTING:
            raise FloorOperationNotAllowedError(
                self.floor.value,
                "set_knitting_defects",
                "only KNITTING tracks a standalone defect figure",
            )
        qty = require_quantity("m4_quantity", m4_quantity)
        if qty > self.completed or self.completed - qty < self.transferred_out:
            raise KnittingDefectsExceedEligibleError(
                self.completed, self.transferred_out, qty,
            )
        return replace(self, m4_major_defect_qty=qty).validate()

    def _require_gated(self, operation: str) -> None:
        if self.kind is not FloorKind.QUALITY_GATED:
            raise FloorOperationNotAllowedError(
                self.floor.value,
                operation,
                "only CHECKING and FINAL_CHECKING are quality-gated",
            )

"""
Typed Exception Hierarchy for the Production Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Floor supervisors, terminals and reporting jobs all call into the same
ledger.  Callers need to react to a rejected operation by TYPE, not by
parsing a message:

    try:
        service.transfer(article_id, Floor.KNITTING, 10, ...)
    except InsufficientAvailableError as e:
        show_banner(f"Only {e.available} units can move from {e.floor}")
        api_response(code=e.code, available=e.available)

Every exception:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (quantities, floors, ids)

Every failure is synchronous and leaves zero mutation and zero audit
event behind.  There is no fatal error class: everything here is
recoverable by the caller.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ProductionKernelError:

    ProductionKernelError (base)
    |
    +-- ValidationError
    |   +-- NonPositiveQuantityError
    |
    +-- InvariantViolation
    |   +-- LedgerInvariantError
    |   +-- OverCompletionError
    |   +-- OverInspectionError
    |   +-- InsufficientAvailableError
    |   +-- InsufficientReviewQuantityError
    |   +-- KnittingDefectsExceedEligibleError
    |   +-- FinalQualityNotReadyError
    |
    +-- QuantityMismatchError
    |   +-- GradeSumMismatchError
    |   +-- RepairShiftMismatchError
    |
    +-- InvalidTransition
    |   +-- FloorNotInRouteError
    |   +-- TerminalFloorTransferError
    |   +-- FloorOperationNotAllowedError
    |   +-- ArticleNotWorkableError
    |   +-- InvalidStatusChangeError
    |
    +-- NotFound
    |   +-- ArticleNotFoundError
    |   +-- OrderNotFoundError
    |   +-- FloorLedgerNotFoundError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AuditError
        +-- AuditChainBrokenError
        +-- AuditReplayError

===============================================================================
ERROR CODES
===============================================================================

| Code                        | Exception                          |
|-----------------------------|------------------------------------|
| VALIDATION_ERROR            | ValidationError                    |
| NON_POSITIVE_QUANTITY       | NonPositiveQuantityError           |
| INVARIANT_VIOLATION         | InvariantViolation                 |
| LEDGER_INVARIANT            | LedgerInvariantError               |
| OVER_COMPLETION             | OverCompletionError                |
| OVER_INSPECTION             | OverInspectionError                |
| INSUFFICIENT_AVAILABLE      | InsufficientAvailableError         |
| INSUFFICIENT_REVIEW_QTY     | InsufficientReviewQuantityError    |
| KNITTING_DEFECTS_EXCEED     | KnittingDefectsExceedEligibleError |
| FINAL_QUALITY_NOT_READY     | FinalQualityNotReadyError          |
| QUANTITY_MISMATCH           | QuantityMismatchError              |
| GRADE_SUM_MISMATCH          | GradeSumMismatchError              |
| REPAIR_SHIFT_MISMATCH       | RepairShiftMismatchError           |
| INVALID_TRANSITION          | InvalidTransition                  |
| FLOOR_NOT_IN_ROUTE          | FloorNotInRouteError               |
| TERMINAL_FLOOR_TRANSFER     | TerminalFloorTransferError         |
| FLOOR_OPERATION_NOT_ALLOWED | FloorOperationNotAllowedError      |
| ARTICLE_NOT_WORKABLE        | ArticleNotWorkableError            |
| INVALID_STATUS_CHANGE       | InvalidStatusChangeError           |
| NOT_FOUND                   | NotFound                           |
| ARTICLE_NOT_FOUND           | ArticleNotFoundError               |
| ORDER_NOT_FOUND             | OrderNotFoundError                 |
| FLOOR_LEDGER_NOT_FOUND      | FloorLedgerNotFoundError           |
| OPTIMISTIC_LOCK_CONFLICT    | OptimisticLockError                |
| IMMUTABILITY_VIOLATION      | ImmutabilityViolationError         |
| AUDIT_CHAIN_BROKEN          | AuditChainBrokenError              |
| AUDIT_REPLAY_FAILED         | AuditReplayError                   |
"""


class ProductionKernelError(Exception):
    """Base exception for all production kernel errors."""

    code: str = "PRODUCTION_KERNEL_ERROR"


# Validation errors


class ValidationError(ProductionKernelError):
    """Malformed or out-of-range input."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


class NonPositiveQuantityError(ValidationError):
    """A quantity that must be strictly positive was zero or negative."""

    code: str = "NON_POSITIVE_QUANTITY"

    def __init__(self, field: str, value: object):
        super().__init__(field, value, "must be greater than zero")


# Invariant violations


class InvariantViolation(ProductionKernelError):
    """Base exception for operations that would break a floor ledger invariant."""

    code: str = "INVARIANT_VIOLATION"


class LedgerInvariantError(InvariantViolation):
    """A floor ledger failed re-validation after a mutation."""

    code: str = "LEDGER_INVARIANT"

    def __init__(self, floor: str, rule: str, detail: str):
        self.floor = floor
        self.rule = rule
        self.detail = detail
        super().__init__(f"Ledger invariant '{rule}' violated on {floor}: {detail}")


class OverCompletionError(InvariantViolation):
    """Completing work would push a non-KNITTING floor past its received quantity."""

    code: str = "OVER_COMPLETION"

    def __init__(self, floor: str, received: int, completed: int, requested: int):
        self.floor = floor
        self.received = received
        self.completed = completed
        self.requested = requested
        super().__init__(
            f"Cannot complete {requested} more on {floor}: "
            f"completed {completed} of {received} received"
        )


class OverInspectionError(InvariantViolation):
    """Inspecting more than the received quantity not yet inspected."""

    code: str = "OVER_INSPECTION"

    def __init__(self, floor: str, received: int, already_inspected: int, requested: int):
        self.floor = floor
        self.received = received
        self.already_inspected = already_inspected
        self.requested = requested
        super().__init__(
            f"Cannot inspect {requested} on {floor}: "
            f"{already_inspected} of {received} received already inspected"
        )


class InsufficientAvailableError(InvariantViolation):
    """Transfer quantity exceeds what the source floor can forward."""

    code: str = "INSUFFICIENT_AVAILABLE"

    def __init__(self, floor: str, available: int, requested: int):
        self.floor = floor
        self.available = available
        self.requested = requested
        super().__init__(
            f"Cannot transfer {requested} from {floor}: only {available} available"
        )


class InsufficientReviewQuantityError(InvariantViolation):
    """Repair shift draws more than the pending-review (M2) balance."""

    code: str = "INSUFFICIENT_REVIEW_QTY"

    def __init__(self, floor: str, m2_balance: int, requested: int):
        self.floor = floor
        self.m2_balance = m2_balance
        self.requested = requested
        super().__init__(
            f"Cannot shift {requested} out of M2 on {floor}: balance is {m2_balance}"
        )


class KnittingDefectsExceedEligibleError(InvariantViolation):
    """KNITTING major-defect quantity would leave eligible below what was already forwarded."""

    code: str = "KNITTING_DEFECTS_EXCEED"

    def __init__(self, completed: int, transferred_out: int, requested: int):
        self.completed = completed
        self.transferred_out = transferred_out
        self.requested = requested
        super().__init__(
            f"Cannot set KNITTING M4 to {requested}: completed {completed}, "
            f"already transferred {transferred_out}"
        )


class FinalQualityNotReadyError(InvariantViolation):
    """Final quality cannot be confirmed while FINAL_CHECKING has unresolved pieces."""

    code: str = "FINAL_QUALITY_NOT_READY"

    def __init__(self, received: int, inspected: int, pending_review: int):
        self.received = received
        self.inspected = inspected
        self.pending_review = pending_review
        super().__init__(
            f"FINAL_CHECKING not ready: {inspected} of {received} inspected, "
            f"{pending_review} pending repair"
        )


# Quantity mismatches


class QuantityMismatchError(ProductionKernelError):
    """Base exception for parts that do not sum to their stated whole."""

    code: str = "QUANTITY_MISMATCH"

    def __init__(self, expected: int, actual: int, message: str):
        self.expected = expected
        self.actual = actual
        super().__init__(message)


class GradeSumMismatchError(QuantityMismatchError):
    """M1+M2+M3+M4 does not equal the inspected quantity."""

    code: str = "GRADE_SUM_MISMATCH"

    def __init__(self, floor: str, inspected_quantity: int, grade_sum: int):
        self.floor = floor
        super().__init__(
            inspected_quantity,
            grade_sum,
            f"Grades on {floor} sum to {grade_sum}, "
            f"expected inspected quantity {inspected_quantity}",
        )


class RepairShiftMismatchError(QuantityMismatchError):
    """toM1+toM3+toM4 does not equal fromM2."""

    code: str = "REPAIR_SHIFT_MISMATCH"

    def __init__(self, floor: str, from_m2: int, shifted_sum: int):
        self.floor = floor
        super().__init__(
            from_m2,
            shifted_sum,
            f"Repair shift on {floor} moves {shifted_sum} but draws {from_m2} from M2",
        )


# Transition errors


class InvalidTransition(ProductionKernelError):
    """Base exception for operations that are not valid for the article's route or state."""

    code: str = "INVALID_TRANSITION"


class FloorNotInRouteError(InvalidTransition):
    """The floor is not part of the article's route."""

    code: str = "FLOOR_NOT_IN_ROUTE"

    def __init__(self, floor: str, routing: str):
        self.floor = floor
        self.routing = routing
        super().__init__(f"Floor {floor} is not in the {routing} route")


class TerminalFloorTransferError(InvalidTransition):
    """Transfer attempted from the last floor of the route."""

    code: str = "TERMINAL_FLOOR_TRANSFER"

    def __init__(self, floor: str):
        self.floor = floor
        super().__init__(f"Cannot transfer out of terminal floor {floor}")


class FloorOperationNotAllowedError(InvalidTransition):
    """The operation does not apply to this kind of floor."""

    code: str = "FLOOR_OPERATION_NOT_ALLOWED"

    def __init__(self, floor: str, operation: str, reason: str):
        self.floor = floor
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} is not allowed on {floor}: {reason}")


class ArticleNotWorkableError(InvalidTransition):
    """Quantity operation attempted on an on-hold or cancelled article."""

    code: str = "ARTICLE_NOT_WORKABLE"

    def __init__(self, article_id: str, status: str):
        self.article_id = article_id
        self.status = status
        super().__init__(f"Article {article_id} is {status} and cannot be worked")


class InvalidStatusChangeError(InvalidTransition):
    """Lifecycle status change not permitted from the current status."""

    code: str = "INVALID_STATUS_CHANGE"

    def __init__(self, article_id: str, from_status: str, to_status: str):
        self.article_id = article_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Article {article_id} cannot move from {from_status} to {to_status}"
        )


# Lookup errors


class NotFound(ProductionKernelError):
    """Base exception for unknown entities."""

    code: str = "NOT_FOUND"


class ArticleNotFoundError(NotFound):
    """Article does not exist."""

    code: str = "ARTICLE_NOT_FOUND"

    def __init__(self, article_id: str):
        self.article_id = article_id
        super().__init__(f"Article not found: {article_id}")


class OrderNotFoundError(NotFound):
    """Production order does not exist."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Production order not found: {order_id}")


class UnknownFloorError(NotFound):
    """Floor name is not in the factory catalog."""

    code: str = "UNKNOWN_FLOOR"

    def __init__(self, floor: str):
        self.floor = floor
        super().__init__(f"Unknown floor: {floor}")


class FloorLedgerNotFoundError(NotFound):
    """No ledger row exists for the (article, floor) pair."""

    code: str = "FLOOR_LEDGER_NOT_FOUND"

    def __init__(self, article_id: str, floor: str):
        self.article_id = article_id
        self.floor = floor
        super().__init__(f"No ledger for article {article_id} on floor {floor}")


# Concurrency errors


class ConcurrencyError(ProductionKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Version conflict persisted after every retry."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, attempts: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.attempts = attempts
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id} "
            f"after {attempts} attempt(s)"
        )


# Immutability errors


class ImmutabilityError(ProductionKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Audit errors


class AuditError(ProductionKernelError):
    """Base exception for audit trail errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Per-article audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, article_id: str, seq: int, expected_hash: str, actual_hash: str):
        self.article_id = article_id
        self.seq = seq
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken for article {article_id} at seq {seq}: "
            f"expected {expected_hash}, got {actual_hash}"
        )


class AuditReplayError(AuditError):
    """Audit event stream cannot be replayed into a ledger."""

    code: str = "AUDIT_REPLAY_FAILED"

    def __init__(self, seq: int, reason: str):
        self.seq = seq
        self.reason = reason
        super().__init__(f"Cannot replay audit event seq {seq}: {reason}")

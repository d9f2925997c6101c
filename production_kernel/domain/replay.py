"""
Audit replay -- rebuild an article's ledgers from its event stream.

Responsibility:
    Applies an article's audit events, in sequence order, to freshly
    opened ledgers using the same pure transitions the ledger service
    uses.  The result must equal the persisted ledger state exactly;
    the reconciliation script and the replay tests rely on that.

Failure modes:
    - AuditReplayError if the stream is empty, does not start with
      ArticleCreated, has a gap or duplicate in ``seq``, or contains an
      event that the ledger rejects.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from production_kernel.domain.dtos import ActionKind, ArticleStatus, AuditEventRecord
from production_kernel.domain.floors import (
    CATALOG,
    Floor,
    RoutingAttribute,
    next_floor,
    parse_floor,
    parse_routing,
)
from production_kernel.domain.ledger import FloorLedger, QualityGrades
from production_kernel.domain.progress import status_after_work
from production_kernel.exceptions import AuditReplayError, ProductionKernelError
from production_kernel.logging_config import get_logger

logger = get_logger("domain.replay")


@dataclass(frozen=True)
class ReplayedArticle:
    """Article state reconstructed from its audit events."""

    planned_quantity: int
    routing: RoutingAttribute
    ledgers: dict[Floor, FloorLedger]
    frontier_floor: Floor
    status: ArticleStatus
    final_quality_confirmed: bool
    last_seq: int


def replay_article(events: Sequence[AuditEventRecord]) -> ReplayedArticle:
    """Replay ``events`` (any order; sorted by seq here) into article state."""
    ordered = sorted(events, key=lambda e: e.seq)
    if not ordered:
        raise AuditReplayError(0, "no events to replay")

    genesis = ordered[0]
    if genesis.seq != 1 or genesis.action_kind is not ActionKind.ARTICLE_CREATED:
        raise AuditReplayError(genesis.seq, "stream must start with ArticleCreated at seq 1")

    planned = int(genesis.payload["planned_quantity"])
    routing = parse_routing(genesis.payload["routing"])
    ledgers = {floor: FloorLedger.opened(floor) for floor in CATALOG}
    ledgers[Floor.KNITTING] = FloorLedger.opened(Floor.KNITTING, received=planned)
    frontier = Floor.KNITTING
    status = ArticleStatus.PENDING
    confirmed = False

    expected_seq = 2
    for event in ordered[1:]:
        if event.seq != expected_seq:
            raise AuditReplayError(
                event.seq, f"sequence gap or duplicate, expected {expected_seq}",
            )
        expected_seq += 1

        try:
            match event.action_kind:
                case ActionKind.WORK_COMPLETED:
                    floor = parse_floor(event.floor)
                    ledgers[floor] = ledgers[floor].complete(event.quantity_delta)
                    status = status_after_work(status, planned, ledgers)
                case ActionKind.QUALITY_INSPECTED:
                    floor = parse_floor(event.floor)
                    grades = QualityGrades(
                        m1=event.payload["m1"],
                        m2=event.payload["m2"],
                        m3=event.payload["m3"],
                        m4=event.payload["m4"],
                    )
                    ledgers[floor] = ledgers[floor].inspect(event.quantity_delta, grades)
                    status = status_after_work(status, planned, ledgers)
                case ActionKind.REPAIR_SHIFTED:
                    floor = parse_floor(event.floor)
                    ledgers[floor] = ledgers[floor].shift_repair(
                        event.payload["from_m2"],
                        event.payload["to_m1"],
                        event.payload["to_m3"],
                        event.payload["to_m4"],
                    )
                    status = status_after_work(status, planned, ledgers)
                case ActionKind.TRANSFERRED:
                    source = parse_floor(event.floor)
                    target = parse_floor(event.payload["to_floor"])
                    if target is not next_floor(source, routing):
                        raise AuditReplayError(
                            event.seq, f"{target.value} does not follow {source.value}",
                        )
                    ledgers[source] = ledgers[source].transfer_out(event.quantity_delta)
                    ledgers[target] = ledgers[target].receive(event.quantity_delta)
                    frontier = target
                    status = status_after_work(status, planned, ledgers)
                case ActionKind.KNITTING_DEFECTS_SET:
                    ledgers[Floor.KNITTING] = ledgers[Floor.KNITTING].set_knitting_defects(
                        event.payload["new_m4"],
                    )
                    status = status_after_work(status, planned, ledgers)
                case ActionKind.FINAL_QUALITY_CONFIRMED:
                    confirmed = True
                case ActionKind.STATUS_CHANGED:
                    status = ArticleStatus(event.payload["to_status"])
                case _:
                    raise AuditReplayError(
                        event.seq, f"unexpected action {event.action_kind.value}",
                    )
        except AuditReplayError:
            raise
        except ProductionKernelError as exc:
            raise AuditReplayError(event.seq, str(exc)) from exc

    logger.debug(
        "article_replayed",
        extra={"article_id": str(genesis.article_id), "events": len(ordered)},
    )

    return ReplayedArticle(
        planned_quantity=planned,
        routing=routing,
        ledgers=ledgers,
        frontier_floor=frontier,
        status=status,
        final_quality_confirmed=confirmed,
        last_seq=ordered[-1].seq,
    )

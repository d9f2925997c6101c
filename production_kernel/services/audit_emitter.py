"""
AuditEmitter -- post-commit fan-out of audit events to downstream sinks.

Responsibility:
    After an article's transaction has committed and its lock has been
    released, hands the committed ``AuditEventRecord`` to every
    subscribed sink (reporting feeds, notifications, metrics).

Architecture position:
    Kernel > Services.  The emitter is a pure sink: it never reads back,
    never mutates ledgers, and a failing sink cannot undo or delay a
    committed operation.

Ordering:
    Publishing happens after the article lock is released, so two
    operations on the same article can reach a sink in either order.
    Sinks that care about order must order by ``record.seq``, which is
    contiguous per article; commit order and seq order always agree.

Failure modes:
    - Sink exceptions are logged as ``audit_sink_failed`` with the
      traceback and do not propagate; the operation already committed.
"""

from collections.abc import Callable
from threading import Lock

from production_kernel.domain.dtos import AuditEventRecord
from production_kernel.logging_config import get_logger

logger = get_logger("services.audit_emitter")

AuditSink = Callable[[AuditEventRecord], None]


class LoggingAuditSink:
    """Writes every committed event to the structured log."""

    def __call__(self, record: AuditEventRecord) -> None:
        logger.info(
            "audit_event_emitted",
            extra={
                "article_id": str(record.article_id),
                "seq": record.seq,
                "action_kind": record.action_kind.value,
                "floor": record.floor.value if record.floor else None,
                "quantity_delta": record.quantity_delta,
                "batch_number": record.batch_number,
            },
        )


class InMemoryAuditSink:
    """Collects committed events; per-article views are in seq order."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.records: list[AuditEventRecord] = []

    def __call__(self, record: AuditEventRecord) -> None:
        with self._lock:
            self.records.append(record)

    def for_article(self, article_id) -> list[AuditEventRecord]:
        with self._lock:
            return sorted(
                (r for r in self.records if r.article_id == article_id),
                key=lambda r: r.seq,
            )


class AuditEmitter:
    """
    Fan-out of committed audit events to subscribed sinks.

    Delivery order across concurrent operations is not seq order; see
    the module docstring.
    """

    def __init__(self, sinks: list[AuditSink] | None = None):
        self._sinks: list[AuditSink] = list(sinks or [])

    def subscribe(self, sink: AuditSink) -> None:
        self._sinks.append(sink)

    def publish(self, record: AuditEventRecord) -> None:
        for sink in list(self._sinks):
            try:
                sink(record)
            except Exception:
                logger.error(
                    "audit_sink_failed",
                    extra={
                        "sink": type(sink).__name__,
                        "article_id": str(record.article_id),
                        "seq": record.seq,
                    },
                    exc_info=True,
                )

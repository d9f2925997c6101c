"""
ArticleCommandService -- transaction, lock and retry skeleton for article mutations.

Responsibility:
    Runs one mutation of one article as a single synchronous unit:
    acquire the article's lock, open a fresh session, load and lock the
    article row, apply the mutation, append its audit event, commit,
    release the lock, and only then publish the event to downstream sinks.

Architecture position:
    Kernel > Services -- imperative shell.  ``FloorLedgerService`` and
    ``OrderService`` extend this class.  Unlike flush-only kernel helpers
    (``AuditorService``), command services own the transaction boundary.

Invariants enforced:
    - Per-article serialization: the in-process lock serializes callers
      in this process; the article's version column detects writers in
      other processes, which are retried with a fresh session.
    - All-or-nothing: any exception rolls the session back before it
      propagates; a rejected operation leaves no ledger change and no
      audit event.
    - Exactly one audit event per committed operation.
    - Sinks run after commit and after the lock is released.

Failure modes:
    - ProductionKernelError subclasses propagate unchanged (never retried).
    - OptimisticLockError once ``max_conflict_retries`` is exhausted.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from production_kernel.config import LedgerConfig
from production_kernel.domain.clock import Clock, SystemClock
from production_kernel.domain.dtos import AuditEventRecord
from production_kernel.exceptions import (
    ArticleNotFoundError,
    OptimisticLockError,
    ProductionKernelError,
    ValidationError,
)
from production_kernel.logging_config import LogContext, get_logger
from production_kernel.models.audit_event import ArticleAuditEvent
from production_kernel.models.production import ArticleModel
from production_kernel.services.audit_emitter import AuditEmitter
from production_kernel.services.auditor_service import AuditorService
from production_kernel.services.lock_registry import (
    ArticleLockRegistry,
    default_lock_registry,
)

logger = get_logger("services.command")

T = TypeVar("T")

ArticleMutation = Callable[[Session, ArticleModel, AuditorService], tuple[T, ArticleAuditEvent]]


def require_identity(actor_user_id: Any, floor_supervisor_id: Any) -> None:
    """Both identities are mandatory on every mutation; upstream has authorized them."""
    if not isinstance(actor_user_id, UUID):
        raise ValidationError("actor_user_id", actor_user_id, "must be a UUID")
    if not isinstance(floor_supervisor_id, UUID):
        raise ValidationError("floor_supervisor_id", floor_supervisor_id, "must be a UUID")


class ArticleCommandService:
    """
    Base class for services that mutate articles.

    Args:
        session_factory: Factory producing one session per attempt.
        clock: Clock for audit timestamps. Defaults to SystemClock.
        config: Retry budget and intake limits. Defaults to LedgerConfig().
        emitter: Post-commit audit fan-out. Defaults to an emitter with no sinks.
        locks: Per-article lock registry. Defaults to the process-wide registry.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        config: LedgerConfig | None = None,
        emitter: AuditEmitter | None = None,
        locks: ArticleLockRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._config = config or LedgerConfig()
        self._emitter = emitter or AuditEmitter()
        self._locks = locks or default_lock_registry

    @property
    def emitter(self) -> AuditEmitter:
        return self._emitter

    def _load_article(self, session: Session, article_id: UUID) -> ArticleModel:
        article = session.execute(
            select(ArticleModel)
            .where(ArticleModel.id == article_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if article is None:
            raise ArticleNotFoundError(str(article_id))
        return article

    def _execute(
        self,
        operation: str,
        article_id: UUID,
        actor_user_id: UUID,
        floor_supervisor_id: UUID,
        mutate: ArticleMutation,
        **log_fields: Any,
    ) -> T:
        """Run ``mutate`` against the locked article and commit, retrying version conflicts."""
        with LogContext.bind(article_id=str(article_id), actor_id=str(actor_user_id)):
            logger.info(f"{operation}_started", extra=log_fields)
            try:
                require_identity(actor_user_id, floor_supervisor_id)
            except ValidationError:
                logger.warning(f"{operation}_rejected", exc_info=True)
                raise

            record: AuditEventRecord
            with self._locks.hold(article_id):
                attempt = 0
                while True:
                    attempt += 1
                    session = self._session_factory()
                    try:
                        article = self._load_article(session, article_id)
                        auditor = AuditorService(session, self._clock)
                        result, event = mutate(session, article, auditor)
                        session.commit()
                        record = event.to_record()
                        break
                    except StaleDataError as exc:
                        session.rollback()
                        if attempt > self._config.max_conflict_retries:
                            logger.error(
                                "article_lock_conflict_exhausted",
                                extra={"operation": operation, "attempts": attempt},
                            )
                            raise OptimisticLockError(
                                "Article", str(article_id), attempt,
                            ) from exc
                        logger.warning(
                            "article_lock_conflict_retry",
                            extra={"operation": operation, "attempt": attempt},
                        )
                        time.sleep(self._config.retry_backoff_seconds * attempt)
                    except ProductionKernelError:
                        session.rollback()
                        logger.warning(f"{operation}_rejected", exc_info=True)
                        raise
                    except Exception:
                        session.rollback()
                        logger.error(f"{operation}_failed", exc_info=True)
                        raise
                    finally:
                        session.close()

            # Outside the lock: sinks may see one article's events out of seq order.
            self._emitter.publish(record)
            logger.info(
                f"{operation}_committed",
                extra={"seq": record.seq, "attempts": attempt, **log_fields},
            )
            return result

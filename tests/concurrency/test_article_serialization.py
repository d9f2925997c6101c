"""
Per-article serialization tests.

Concurrent mutations of one article must serialize: two simultaneous
+5 completions leave completed at initial + 10, never initial + 5.
Writers the in-process lock cannot see (another process) are caught by
the article's version column and retried with a fresh session.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest
from sqlalchemy import update

from production_kernel.config import LedgerConfig
from production_kernel.domain.floors import Floor
from production_kernel.exceptions import InsufficientAvailableError, OptimisticLockError
from production_kernel.models.production import ArticleModel
from production_kernel.services.audit_emitter import AuditEmitter
from production_kernel.services.auditor_service import AuditorService
from production_kernel.services.ledger_service import FloorLedgerService
from production_kernel.services.lock_registry import ArticleLockRegistry

pytestmark = pytest.mark.slow


def _run_concurrently(count, fn):
    barrier = Barrier(count)

    def _worker(i):
        barrier.wait()
        return fn(i)

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(_worker, range(count)))


class TestSameArticle:

    def test_two_concurrent_completions_both_apply(self, article_factory, ops, floor_status):
        article_id = article_factory()
        ops.complete(article_id, Floor.KNITTING, 20)

        _run_concurrently(2, lambda _: ops.complete(article_id, Floor.KNITTING, 5))

        assert floor_status(article_id, Floor.KNITTING).completed == 30

    def test_many_concurrent_completions(self, article_factory, ops, floor_status, session_factory):
        article_id = article_factory()

        results = _run_concurrently(8, lambda _: ops.complete(article_id, Floor.KNITTING, 5))

        assert floor_status(article_id, Floor.KNITTING).completed == 40
        assert sorted(r.new_completed for r in results) == [5, 10, 15, 20, 25, 30, 35, 40]
        with session_factory() as s:
            trace = AuditorService(s).trace(article_id)
            assert [e.seq for e in trace.entries] == list(range(1, 10))
            assert AuditorService(s).validate_chain(article_id)

    def test_concurrent_transfers_never_overdraw(self, article_factory, ops, floor_status):
        article_id = article_factory()
        ops.complete(article_id, Floor.KNITTING, 100)

        def _attempt(_):
            try:
                ops.transfer(article_id, Floor.KNITTING, 30)
                return True
            except InsufficientAvailableError:
                return False

        outcomes = _run_concurrently(4, _attempt)

        assert outcomes.count(True) == 3
        knitting = floor_status(article_id, Floor.KNITTING)
        assert knitting.transferred_out == 90
        assert floor_status(article_id, Floor.CHECKING).received == 90

    def test_separate_lock_registries_still_serialize(
        self, article_factory, session_factory, deterministic_clock,
        test_actor_id, test_supervisor_id, floor_status,
    ):
        """Two services that share no lock behave like two processes."""
        article_id = article_factory()
        services = [
            FloorLedgerService(
                session_factory,
                clock=deterministic_clock,
                config=LedgerConfig(database_url="sqlite://", max_conflict_retries=20, retry_backoff_seconds=0.0),
                locks=ArticleLockRegistry(),
            )
            for _ in range(2)
        ]

        _run_concurrently(
            2,
            lambda i: services[i].complete_work(
                article_id, Floor.KNITTING, 5, test_actor_id, test_supervisor_id,
            ),
        )

        assert floor_status(article_id, Floor.KNITTING).completed == 10


class TestDifferentArticles:

    def test_articles_progress_in_parallel(self, article_factory, ops, floor_status):
        article_ids = [article_factory(article_number=f"ART-{i}") for i in range(4)]

        _run_concurrently(4, lambda i: ops.complete(article_ids[i], Floor.KNITTING, 10 + i))

        for i, article_id in enumerate(article_ids):
            assert floor_status(article_id, Floor.KNITTING).completed == 10 + i


class _InterferingService(FloorLedgerService):
    """Bumps the article version from another session right after each load."""

    def __init__(self, *args, interfere_times, **kwargs):
        super().__init__(*args, **kwargs)
        self.remaining = interfere_times
        self.loads = 0

    def _load_article(self, session, article_id):
        article = super()._load_article(session, article_id)
        self.loads += 1
        if self.remaining > 0:
            self.remaining -= 1
            with self._session_factory() as other:
                other.execute(
                    update(ArticleModel)
                    .where(ArticleModel.id == article_id)
                    .values(version=ArticleModel.version + 1)
                )
                other.commit()
        return article


class TestVersionConflicts:

    @pytest.fixture(autouse=True)
    def _sqlite_only(self, engine):
        if engine.dialect.name != "sqlite":
            pytest.skip("row locks block the interfering writer on server databases")

    def _service(self, session_factory, clock, retries, interfere_times):
        return _InterferingService(
            session_factory,
            clock=clock,
            config=LedgerConfig(
                database_url="sqlite://", max_conflict_retries=retries, retry_backoff_seconds=0.0,
            ),
            emitter=AuditEmitter(),
            locks=ArticleLockRegistry(),
            interfere_times=interfere_times,
        )

    def test_conflict_retried_with_fresh_session(
        self, article_factory, session_factory, deterministic_clock, floor_status,
        test_actor_id, test_supervisor_id, captured_logs,
    ):
        article_id = article_factory()
        service = self._service(session_factory, deterministic_clock, retries=3, interfere_times=2)

        result = service.complete_work(article_id, Floor.KNITTING, 5, test_actor_id, test_supervisor_id)

        assert result.new_completed == 5
        assert service.loads == 3
        assert floor_status(article_id, Floor.KNITTING).completed == 5
        retries = [r for r in captured_logs() if r["message"] == "article_lock_conflict_retry"]
        assert len(retries) == 2

    def test_exhausted_budget_raises(
        self, article_factory, session_factory, deterministic_clock, floor_status,
        test_actor_id, test_supervisor_id,
    ):
        article_id = article_factory()
        service = self._service(session_factory, deterministic_clock, retries=2, interfere_times=10)

        with pytest.raises(OptimisticLockError) as exc_info:
            service.complete_work(article_id, Floor.KNITTING, 5, test_actor_id, test_supervisor_id)

        assert exc_info.value.attempts == 3
        assert floor_status(article_id, Floor.KNITTING).completed == 0

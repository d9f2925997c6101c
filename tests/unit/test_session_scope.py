"""Engine construction and the commit-or-rollback session scope."""

from uuid import uuid4

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from production_kernel.db.engine import build_engine, session_scope
from production_kernel.models.production import ArticleModel, ProductionOrderModel


class TestBuildEngine:

    def test_in_memory_sqlite_shares_one_connection(self):
        engine = build_engine("sqlite://")
        try:
            assert isinstance(engine.pool, StaticPool)
        finally:
            engine.dispose()

    def test_sqlite_foreign_keys_enforced(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'fk.db'}")
        try:
            with engine.connect() as conn:
                assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1
        finally:
            engine.dispose()


class TestSessionScope:

    def test_commits_on_success(self, session_factory, test_actor_id):
        with session_scope(session_factory) as s:
            s.add(ProductionOrderModel(order_number="PO-SCOPE", created_by_id=test_actor_id))

        with session_factory() as s:
            numbers = s.execute(select(ProductionOrderModel.order_number)).scalars().all()
        assert numbers == ["PO-SCOPE"]

    def test_rolls_back_and_reraises(self, session_factory, test_actor_id, captured_logs):
        with pytest.raises(RuntimeError):
            with session_scope(session_factory) as s:
                s.add(ProductionOrderModel(order_number="PO-GONE", created_by_id=test_actor_id))
                s.flush()
                raise RuntimeError("operator aborted")

        with session_factory() as s:
            assert s.execute(select(ProductionOrderModel)).first() is None
        assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())

    def test_orphan_article_rejected(self, session_factory):
        with pytest.raises(IntegrityError):
            with session_scope(session_factory) as s:
                s.add(ArticleModel(
                    order_id=uuid4(),
                    line_number=1,
                    article_number="ART-X",
                    planned_quantity=10,
                    routing="AUTO",
                    created_by_id=uuid4(),
                ))

"""
Audit chain validation tests.

Verifies:
- Every article's events form a contiguous seq from 1 with linked hashes
- Tampering with a stored quantity, payload, floor, actor, traceability
  tag or link is detected
- Chains of different articles are independent
"""

from uuid import uuid4

import pytest
from sqlalchemy import select, update

from production_kernel.domain.floors import Floor
from production_kernel.exceptions import AuditChainBrokenError
from production_kernel.models.audit_event import ArticleAuditEvent
from production_kernel.services.auditor_service import AuditorService, traced_attributes
from production_kernel.utils.hashing import hash_audit_event, hash_payload


@pytest.fixture
def worked_article(article_factory, ops):
    article_id = article_factory()
    ops.complete(article_id, Floor.KNITTING, 100)
    ops.transfer(article_id, Floor.KNITTING, 90, batch_number="B-1")
    ops.inspect(article_id, Floor.CHECKING, 90, m1=80, m2=6, m3=3, m4=1)
    ops.repair(article_id, Floor.CHECKING, 6, to_m1=6)
    return article_id


class TestChainStructure:

    def test_chain_is_valid(self, worked_article, session, deterministic_clock):
        assert AuditorService(session, deterministic_clock).validate_chain(worked_article)

    def test_seq_contiguous_and_linked(self, worked_article, session):
        trace = AuditorService(session).trace(worked_article)
        assert [e.seq for e in trace.entries] == [1, 2, 3, 4, 5]
        assert trace.last_seq == 5

        rows = session.execute(
            select(ArticleAuditEvent)
            .where(ArticleAuditEvent.article_id == worked_article)
            .order_by(ArticleAuditEvent.seq)
        ).scalars().all()
        assert rows[0].is_genesis
        assert rows[0].prev_hash is None
        for prev, current in zip(rows, rows[1:]):
            assert current.prev_hash == prev.hash

    def test_hash_recomputes(self, worked_article, session):
        row = session.execute(
            select(ArticleAuditEvent).where(
                ArticleAuditEvent.article_id == worked_article,
                ArticleAuditEvent.seq == 1,
            )
        ).scalar_one()
        assert row.payload_hash == hash_payload(row.payload)
        assert row.hash == hash_audit_event(
            article_id=row.article_id,
            seq=1,
            action=row.action_kind,
            quantity_delta=row.quantity_delta,
            payload_hash=row.payload_hash,
            prev_hash=None,
            attributes=traced_attributes(row),
        )

    def test_articles_have_independent_chains(self, article_factory, ops, session):
        first = article_factory(article_number="ART-1")
        second = article_factory(article_number="ART-2")
        ops.complete(first, Floor.KNITTING, 5)
        ops.complete(second, Floor.KNITTING, 7)
        ops.complete(first, Floor.KNITTING, 5)

        auditor = AuditorService(session)
        assert auditor.trace(first).last_seq == 3
        assert auditor.trace(second).last_seq == 2
        assert auditor.validate_chain(first)
        assert auditor.validate_chain(second)


class TestTamperDetection:
    """Core UPDATE statements bypass the ORM listeners, simulating direct DB edits."""

    def test_altered_quantity_detected(self, worked_article, session_factory):
        with session_factory() as s:
            s.execute(
                update(ArticleAuditEvent)
                .where(ArticleAuditEvent.article_id == worked_article, ArticleAuditEvent.seq == 2)
                .values(quantity_delta=1000)
            )
            s.commit()

        with session_factory() as s:
            with pytest.raises(AuditChainBrokenError) as exc_info:
                AuditorService(s).validate_chain(worked_article)
        assert exc_info.value.seq == 2

    def test_altered_payload_detected(self, worked_article, session_factory):
        with session_factory() as s:
            s.execute(
                update(ArticleAuditEvent)
                .where(ArticleAuditEvent.article_id == worked_article, ArticleAuditEvent.seq == 4)
                .values(payload={"m1": 90, "m2": 0, "m3": 0, "m4": 0})
            )
            s.commit()

        with session_factory() as s:
            with pytest.raises(AuditChainBrokenError) as exc_info:
                AuditorService(s).validate_chain(worked_article)
        assert exc_info.value.seq == 4

    def test_broken_link_detected(self, worked_article, session_factory):
        with session_factory() as s:
            s.execute(
                update(ArticleAuditEvent)
                .where(ArticleAuditEvent.article_id == worked_article, ArticleAuditEvent.seq == 3)
                .values(prev_hash="0" * 64)
            )
            s.commit()

        with session_factory() as s:
            with pytest.raises(AuditChainBrokenError) as exc_info:
                AuditorService(s).validate_chain(worked_article)
        assert exc_info.value.seq == 3

    def test_tamper_logged(self, worked_article, session_factory, captured_logs):
        with session_factory() as s:
            s.execute(
                update(ArticleAuditEvent)
                .where(ArticleAuditEvent.article_id == worked_article, ArticleAuditEvent.seq == 5)
                .values(quantity_delta=0)
            )
            s.commit()

        with session_factory() as s, pytest.raises(AuditChainBrokenError):
            AuditorService(s).validate_chain(worked_article)
        assert any(r["message"] == "audit_chain_broken" for r in captured_logs())

    def test_moved_floor_detected(self, article_factory, ops, session_factory):
        article_id = article_factory()
        ops.complete(article_id, Floor.KNITTING, 100)
        ops.transfer(article_id, Floor.KNITTING, 50)
        with session_factory() as s:
            s.execute(
                update(ArticleAuditEvent)
                .where(ArticleAuditEvent.article_id == article_id, ArticleAuditEvent.seq == 2)
                .values(floor=Floor.WASHING.value)
            )
            s.commit()

        with session_factory() as s:
            with pytest.raises(AuditChainBrokenError) as exc_info:
                AuditorService(s).validate_chain(article_id)
        assert exc_info.value.seq == 2

    @pytest.mark.parametrize(
        "column, value",
        [
            ("actor_user_id", str(uuid4())),
            ("floor_supervisor_id", None),
            ("machine_id", "KM-99"),
            ("shift_id", "NIGHT"),
            ("batch_number", "B-FORGED"),
        ],
    )
    def test_rewritten_identity_or_tag_detected(self, worked_article, session_factory, column, value):
        with session_factory() as s:
            s.execute(
                update(ArticleAuditEvent)
                .where(ArticleAuditEvent.article_id == worked_article, ArticleAuditEvent.seq == 3)
                .values({column: value})
            )
            s.commit()

        with session_factory() as s:
            with pytest.raises(AuditChainBrokenError) as exc_info:
                AuditorService(s).validate_chain(worked_article)
        assert exc_info.value.seq == 3

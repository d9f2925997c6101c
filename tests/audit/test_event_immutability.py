"""
ORM-level immutability tests.

Audit events are append-only and worked articles are never deleted.
"""

import pytest
from sqlalchemy import select

from production_kernel.domain.floors import Floor
from production_kernel.exceptions import ImmutabilityViolationError
from production_kernel.models.audit_event import ArticleAuditEvent
from production_kernel.models.production import ArticleModel


def _first_event(session, article_id) -> ArticleAuditEvent:
    return session.execute(
        select(ArticleAuditEvent).where(
            ArticleAuditEvent.article_id == article_id,
            ArticleAuditEvent.seq == 1,
        )
    ).scalar_one()


class TestAuditEventImmutability:

    def test_update_blocked(self, article_factory, session):
        article_id = article_factory()
        event = _first_event(session, article_id)
        event.remarks = "edited later"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "ArticleAuditEvent"

    def test_delete_blocked(self, article_factory, session):
        article_id = article_factory()
        session.delete(_first_event(session, article_id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_violation_logged(self, article_factory, session, captured_logs):
        article_id = article_factory()
        _first_event(session, article_id).quantity_delta = 1

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked and blocked[0]["operation"] == "UPDATE"


class TestArticleDeletion:

    def test_worked_article_cannot_be_deleted(self, article_factory, ops, session):
        article_id = article_factory()
        ops.complete(article_id, Floor.KNITTING, 10)

        session.delete(session.get(ArticleModel, article_id))
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "Article"

"""Tests for the floor status read model and article progress."""

from decimal import Decimal
from uuid import uuid4

import pytest

from production_kernel.domain.floors import CATALOG, Floor, RoutingAttribute
from production_kernel.domain.ledger import QualityGrades
from production_kernel.exceptions import ArticleNotFoundError, NotFound
from production_kernel.selectors.article_selector import ArticleSelector


class TestFloorStatus:

    def test_knitting_reports_good_quantity(self, article_factory, ops, article_selector):
        article_id = article_factory()
        ops.complete(article_id, Floor.KNITTING, 100)
        ops.knitting_defects(article_id, 3)
        ops.transfer(article_id, Floor.KNITTING, 90)

        status = article_selector.get_floor_status(article_id, Floor.KNITTING)

        assert status.in_route
        assert status.received == 100
        assert status.completed == 100
        assert status.eligible == 97
        assert status.good_quantity == 97
        assert status.remaining_to_process == 0
        assert status.available_to_transfer == 7
        assert status.completion_rate == 100

    def test_gated_floor_reports_grades(self, article_factory, ops, article_selector):
        article_id = article_factory()
        ops.complete(article_id, Floor.KNITTING, 100)
        ops.transfer(article_id, Floor.KNITTING, 90)
        ops.inspect(article_id, Floor.CHECKING, 60, m1=55, m2=5)

        status = article_selector.get_floor_status(article_id, "checking")

        assert status.grades == QualityGrades(m1=55, m2=5)
        assert status.good_quantity is None
        assert status.remaining_to_process == 30
        assert status.available_to_transfer == 55
        assert status.completion_rate == 67

    def test_standard_floor_has_no_grades(self, article_factory, article_selector):
        article_id = article_factory()
        status = article_selector.get_floor_status(article_id, Floor.WASHING)
        assert status.grades is None
        assert status.received == 0
        assert status.completion_rate == 0

    def test_off_route_floor_reports_zeros(self, article_factory, article_selector):
        article_id = article_factory(routing=RoutingAttribute.AUTO)
        status = article_selector.get_floor_status(article_id, Floor.LINKING)
        assert not status.in_route
        assert status.received == status.completed == 0

    def test_unknown_article(self, article_selector):
        with pytest.raises(ArticleNotFoundError):
            article_selector.get_floor_status(uuid4(), Floor.KNITTING)

    def test_unknown_floor(self, article_factory, article_selector):
        article_id = article_factory()
        with pytest.raises(NotFound):
            article_selector.get_floor_status(article_id, "DYEING")


class TestAllFloorStatuses:

    def test_route_order(self, article_factory, article_selector):
        article_id = article_factory(routing=RoutingAttribute.HAND)
        floors = [s.floor for s in article_selector.get_all_floor_statuses(article_id)]
        assert floors[:3] == [Floor.KNITTING, Floor.LINKING, Floor.CHECKING]
        assert len(floors) == 8

    def test_include_off_route(self, article_factory, article_selector):
        article_id = article_factory(routing=RoutingAttribute.AUTO)
        on_route = article_selector.get_all_floor_statuses(article_id)
        everything = article_selector.get_all_floor_statuses(article_id, include_off_route=True)
        assert len(on_route) == 7
        assert [s.floor for s in everything] == list(CATALOG)

    def test_single_frontier(self, article_factory, ops, session_factory):
        article_id = article_factory()
        ops.complete(article_id, Floor.KNITTING, 10)
        ops.transfer(article_id, Floor.KNITTING, 10)

        with session_factory() as s:
            statuses = ArticleSelector(s).get_all_floor_statuses(article_id)
        assert [s.floor for s in statuses if s.is_frontier] == [Floor.CHECKING]


class TestProgress:

    def test_new_article(self, article_factory, article_selector):
        article_id = article_factory(planned_quantity=40)
        progress = article_selector.progress(article_id)
        assert progress.total_completed == 0
        assert progress.percent == Decimal("0.00")

    def test_partial(self, article_factory, ops, session_factory):
        article_id = article_factory(planned_quantity=400)
        ops.complete(article_id, Floor.KNITTING, 100)

        with session_factory() as s:
            progress = ArticleSelector(s).progress(article_id)
        assert progress.percent == Decimal("25.00")
        assert progress.ratio == Decimal("0.2500")

    def test_audit_events_in_order(self, article_factory, ops, session_factory):
        article_id = article_factory()
        ops.complete(article_id, Floor.KNITTING, 1)
        ops.complete(article_id, Floor.KNITTING, 1)
        with session_factory() as s:
            events = ArticleSelector(s).audit_events(article_id)
        assert [e.seq for e in events] == [1, 2, 3]

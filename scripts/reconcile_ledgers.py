#!/usr/bin/env python3
"""
Reconcile stored floor ledgers against their audit trails (read-only).

For every article (or only the articles named with --article / --order)
the script checks:
  - each stored ledger row satisfies the floor invariants
  - the audit hash chain recomputes cleanly
  - replaying the audit events reproduces the stored ledgers, status,
    frontier floor, sequence counter and final-quality flag

Nothing is written.  Discrepancies are reported and the exit code is 1;
repairing them is a supervised, manual step.

Usage:
  python3 scripts/reconcile_ledgers.py --database-url sqlite:///production_kernel.db
  python3 scripts/reconcile_ledgers.py --config ledger.yaml --order <order-uuid>
  python3 scripts/reconcile_ledgers.py --article <uuid> --article <uuid> -v
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from production_kernel.config import LedgerConfig, load_config
from production_kernel.db.engine import build_engine, session_factory
from production_kernel.domain.replay import replay_article
from production_kernel.exceptions import AuditChainBrokenError, AuditReplayError
from production_kernel.logging_config import configure_logging, get_logger
from production_kernel.models.production import ArticleModel
from production_kernel.selectors.article_selector import ArticleSelector
from production_kernel.services.auditor_service import AuditorService

logger = get_logger("scripts.reconcile")


@dataclass
class ArticleReport:
    article_id: UUID
    article_number: str
    problems: list[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.problems


def reconcile_article(session, article: ArticleModel) -> ArticleReport:
    """Collect every discrepancy for one article without changing anything."""
    report = ArticleReport(article.id, article.article_number)

    stored = article.ledger_dtos()
    for floor, ledger in stored.items():
        for rule, detail in ledger.violations():
            report.problems.append(f"{floor.value}: {rule} ({detail})")

    try:
        AuditorService(session).validate_chain(article.id)
    except AuditChainBrokenError as exc:
        report.problems.append(f"audit chain: {exc}")

    events = ArticleSelector(session).audit_events(article.id)
    try:
        replayed = replay_article(events)
    except AuditReplayError as exc:
        report.problems.append(f"replay: {exc}")
        return report

    for floor, expected in replayed.ledgers.items():
        actual = stored.get(floor)
        if actual is None:
            report.problems.append(f"{floor.value}: ledger row missing")
        elif actual != expected:
            report.problems.append(
                f"{floor.value}: stored {actual.to_dict()} != replayed {expected.to_dict()}"
            )

    checks = (
        ("status", article.status, replayed.status.value),
        ("frontier_floor", article.frontier_floor, replayed.frontier_floor.value),
        ("last_event_seq", article.last_event_seq, replayed.last_seq),
        ("final_quality_confirmed", article.final_quality_confirmed, replayed.final_quality_confirmed),
        ("planned_quantity", article.planned_quantity, replayed.planned_quantity),
    )
    for name, actual_value, expected_value in checks:
        if actual_value != expected_value:
            report.problems.append(
                f"{name}: stored {actual_value!r} != replayed {expected_value!r}"
            )
    return report


def _article_ids(session, args) -> list[UUID]:
    selector = ArticleSelector(session)
    ids: list[UUID] = list(args.article or [])
    for order_id in args.order or []:
        ids.extend(selector.article_ids_for_order(order_id))
    if not args.article and not args.order:
        ids = selector.all_article_ids()
    return ids


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Check stored floor ledgers against their audit trails.",
    )
    parser.add_argument("--database-url", help="SQLAlchemy URL (overrides --config)")
    parser.add_argument("--config", type=Path, help="YAML file with LedgerConfig fields")
    parser.add_argument("--article", type=UUID, action="append", help="Article id (repeatable)")
    parser.add_argument("--order", type=UUID, action="append", help="Order id (repeatable)")
    parser.add_argument("-v", "--verbose", action="store_true", help="List clean articles too")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    config = load_config(args.config) if args.config else LedgerConfig.with_defaults()
    url = args.database_url or config.database_url
    configure_logging(level=config.log_level, stream=sys.stderr)

    engine = build_engine(url, echo=config.echo_sql)
    factory = session_factory(engine)
    reports: list[ArticleReport] = []
    session = factory()
    try:
        for article_id in _article_ids(session, args):
            article = session.get(ArticleModel, article_id)
            if article is None:
                reports.append(ArticleReport(article_id, "?", ["article not found"]))
                continue
            reports.append(reconcile_article(session, article))
        # Read-only: never commit.
        session.rollback()
    finally:
        session.close()
        engine.dispose()

    dirty = [r for r in reports if not r.clean]
    print()
    print("  --- Ledger reconciliation ---")
    print(f"  Database:        {engine.url.render_as_string(hide_password=True)}")
    print(f"  Articles:        {len(reports)}")
    print(f"  Discrepancies:   {len(dirty)}")
    print()
    for report in reports:
        if report.clean:
            if args.verbose:
                print(f"  OK    {report.article_number} ({report.article_id})")
            continue
        print(f"  FAIL  {report.article_number} ({report.article_id})")
        for problem in report.problems:
            print(f"          {problem}")
    if dirty:
        print()

    logger.info(
        "reconciliation_finished",
        extra={"articles": len(reports), "discrepancies": len(dirty)},
    )
    return 1 if dirty else 0


if __name__ == "__main__":
    sys.exit(main())

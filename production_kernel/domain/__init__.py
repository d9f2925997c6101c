"""
Pure domain layer.

Floor routing, ledger arithmetic, progress and replay with NO
dependencies on the ORM, the database, or I/O.  All values are
immutable and deterministic.
"""

from production_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from production_kernel.domain.dtos import (
    ActionKind,
    ArticleProgress,
    ArticleSpec,
    ArticleStatus,
    AuditEventRecord,
    FloorStatus,
    OrderStatus,
    Priority,
)
from production_kernel.domain.floors import (
    Floor,
    RoutingAttribute,
    next_floor,
    route_for,
)
from production_kernel.domain.ledger import FloorLedger, QualityGrades
from production_kernel.domain.replay import ReplayedArticle, replay_article

__all__ = [
    "ActionKind",
    "ArticleProgress",
    "ArticleSpec",
    "ArticleStatus",
    "AuditEventRecord",
    "Clock",
    "DeterministicClock",
    "Floor",
    "FloorLedger",
    "FloorStatus",
    "OrderStatus",
    "Priority",
    "QualityGrades",
    "ReplayedArticle",
    "RoutingAttribute",
    "SystemClock",
    "next_floor",
    "replay_article",
    "route_for",
]

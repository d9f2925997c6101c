"""
Module: production_kernel.selectors.base
Responsibility: Base class for read-only queries over orders, articles,
    ledgers and audit events.
Architecture position: Kernel > Selectors.  May import from models/ and
    domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Selectors return frozen domain DTOs, never ORM instances.
    - The caller owns the session and its transaction scope.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Holds the caller's session for subclass queries."""

    def __init__(self, session: Session):
        self.session = session

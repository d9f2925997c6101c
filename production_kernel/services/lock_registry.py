"""
ArticleLockRegistry -- in-process mutual exclusion per article.

Responsibility:
    Hands out one ``threading.Lock`` per article id so that concurrent
    operations on the same article serialize their read-validate-write,
    while operations on different articles proceed in parallel.  Entries
    are reference counted and dropped once the last holder or waiter of
    an article leaves.

Architecture position:
    Kernel > Services -- imperative shell infrastructure, used by
    ``ArticleCommandService``.  Cross-process writers are caught by the
    article row's version column instead.

Failure modes:
    - None raised.  Callers only ever block on the lock of the article
      they are mutating; nothing blocks on I/O while a lock is held
      except the article's own database transaction.
"""

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from uuid import UUID

from production_kernel.logging_config import get_logger

logger = get_logger("services.locks")


@dataclass
class _ArticleLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    # holder plus waiters; the entry is dropped when this returns to zero
    users: int = 0


class ArticleLockRegistry:
    """
    One lock per article id, alive only while someone holds or waits on it.

    The registry therefore stays as large as the set of articles being
    worked right now, not every article the process has ever touched.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[UUID, _ArticleLock] = {}

    def _checkout(self, article_id: UUID) -> _ArticleLock:
        with self._guard:
            entry = self._entries.get(article_id)
            if entry is None:
                entry = self._entries[article_id] = _ArticleLock()
            entry.users += 1
            return entry

    def _release(self, article_id: UUID, entry: _ArticleLock) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[article_id]

    @contextmanager
    def hold(self, article_id: UUID) -> Iterator[None]:
        """Hold the article's lock for the duration of the block."""
        entry = self._checkout(article_id)
        try:
            started = time.monotonic()
            with entry.lock:
                waited_ms = round((time.monotonic() - started) * 1000, 3)
                logger.debug(
                    "article_lock_acquired",
                    extra={"article_id": str(article_id), "waited_ms": waited_ms},
                )
                yield
        finally:
            self._release(article_id, entry)

    def is_held(self, article_id: UUID) -> bool:
        with self._guard:
            entry = self._entries.get(article_id)
            return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


# Shared by every service constructed without an explicit registry
default_lock_registry = ArticleLockRegistry()

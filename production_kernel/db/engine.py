"""
Module: production_kernel.db.engine
Responsibility: Engine construction per dialect, the session factory the
    command services take, and the commit-or-rollback session scope.
Architecture position: Kernel > DB.  create_tables/drop_tables import the
    models so the metadata is complete; nothing else above db/ is imported.

Dialect setup:
    - PostgreSQL: pooled, pre-pinged connections at READ COMMITTED; the
      article row is locked with SELECT ... FOR UPDATE by the services.
    - SQLite: connections are shared across threads and wait up to 30s on
      a locked file; the in-process article lock registry orders writers.
      Foreign keys are switched on per connection.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from production_kernel.logging_config import get_logger

logger = get_logger("db.engine")

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _sqlite_foreign_keys_on(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
) -> Engine:
    """
    Engine for ``database_url``.

    ``pool_size`` and ``max_overflow`` apply to server databases only.
    An in-memory SQLite URL gets a single shared connection.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        options: dict = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": SQLITE_BUSY_TIMEOUT_SECONDS,
            },
        }
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **options)
        event.listen(engine, "connect", _sqlite_foreign_keys_on)
    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_recycle=1800,
            isolation_level="READ COMMITTED",
        )

    logger.info(
        "engine_built",
        extra={"dialect": engine.dialect.name, "echo": echo},
    )
    return engine


def session_factory(engine: Engine) -> sessionmaker[Session]:
    """Sessions keep loaded state readable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """
    One transaction: commit on normal exit, roll back and re-raise otherwise.

    Usage:
        with session_scope(factory) as session:
            session.add(order)
    """
    session = factory()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    from production_kernel.db.base import Base
    import production_kernel.models  # noqa: F401

    Base.metadata.create_all(engine)


def drop_tables(engine: Engine) -> None:
    """Drop every kernel table.  Test teardown only."""
    from production_kernel.db.base import Base
    import production_kernel.models  # noqa: F401

    Base.metadata.drop_all(engine)

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import BigInteger, Integer, JSON, create_engine, event, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import declarative_base

from kamkunji.core.config import DatabaseConfig

logger = logging.getLogger(__name__)

Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")
JSONType = JSON().with_variant(JSONB(), "postgresql")

_engine: Optional[Engine] = None


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine(db_config: DatabaseConfig) -> Engine:
    """Create the process-wide engine. Called once by the app factory."""
    global _engine

    if _engine is not None:
        _engine.dispose()

    kwargs = {"echo": db_config.echo, "future": True}
    if db_config.url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            pool_size=db_config.pool_size,
            max_overflow=db_config.max_overflow,
            pool_recycle=db_config.pool_recycle,
            pool_pre_ping=True,
        )

    _engine = create_engine(db_config.url, **kwargs)
    if _engine.dialect.name == "sqlite":
        event.listen(_engine, "connect", _enable_sqlite_foreign_keys)
    logger.info("Database engine initialised (%s)", _engine.url.get_backend_name())
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Database engine is not initialised; call init_engine() first")
    return _engine


@contextmanager
def get_connection() -> Iterator[Connection]:
    """Plain connection; callers commit explicitly."""
    with get_engine().connect() as conn:
        yield conn


@contextmanager
def transaction() -> Iterator[Connection]:
    """Connection inside BEGIN ... COMMIT; any exception rolls everything back."""
    with get_engine().begin() as conn:
        yield conn


def create_schema() -> None:
    # Importing the models registers every table on Base.metadata.
    import kamkunji.models  # noqa: F401

    Base.metadata.create_all(get_engine())


def check_connection() -> bool:
    with get_connection() as conn:
        return conn.execute(text("SELECT 1")).scalar() == 1

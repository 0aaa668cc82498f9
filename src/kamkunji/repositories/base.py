from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar
import json
import logging

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from kamkunji import db
from kamkunji.core.exceptions import BaseAPIException, DatabaseError

logger = logging.getLogger(__name__)

R = TypeVar("R")


class BaseRepository(ABC):
    """
    Raw-SQL repository base.

    Every helper takes an optional ``conn``. With one, the statement joins
    the caller's transaction; without, a connection is opened for the call
    and writes are committed before it closes.

    Driver errors surface as DatabaseError tagged with the operation
    (SELECT, WRITE, INSERT, BATCH, TRANSACTION).
    """

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """BEGIN ... COMMIT; rolled back if anything inside raises"""
        try:
            with db.transaction() as conn:
                yield conn
        except BaseAPIException:
            raise
        except SQLAlchemyError as e:
            self._fail("TRANSACTION", "transaction", e)

    @staticmethod
    def _fail(operation: str, statement: str, error: SQLAlchemyError):
        if isinstance(error, IntegrityError):
            logger.error(f"Integrity violation ({operation}): {statement} -> {error}")
            raise DatabaseError(f"Data integrity violation: {error}", operation)
        logger.error(f"{operation} failed: {statement} -> {error}")
        raise DatabaseError(f"{operation} failed", operation)

    def _run(self, operation: str, statement: str, conn: Optional[Connection],
             work: Callable[[Connection], R], commit: bool = False) -> R:
        try:
            if conn is not None:
                return work(conn)
            with db.get_connection() as own:
                result = work(own)
                if commit:
                    own.commit()
                return result
        except SQLAlchemyError as e:
            self._fail(operation, statement, e)

    def execute_query(self, query: str, params: Optional[Dict[str, Any]] = None,
                      conn: Optional[Connection] = None) -> List[Dict[str, Any]]:
        return self._run(
            "SELECT", query, conn,
            lambda c: [dict(row._mapping) for row in c.execute(text(query), params or {})],
        )

    def execute_single_query(self, query: str, params: Optional[Dict[str, Any]] = None,
                             conn: Optional[Connection] = None) -> Optional[Dict[str, Any]]:
        rows = self.execute_query(query, params, conn)
        return rows[0] if rows else None

    def execute_scalar(self, query: str, params: Optional[Dict[str, Any]] = None,
                       conn: Optional[Connection] = None) -> Any:
        """COUNT, SUM and friends"""
        return self._run("SELECT", query, conn, lambda c: c.execute(text(query), params or {}).scalar())

    def execute_command(self, command: str, params: Optional[Dict[str, Any]] = None,
                        conn: Optional[Connection] = None) -> int:
        """INSERT/UPDATE/DELETE; returns the affected row count"""
        return self._run(
            "WRITE", command, conn,
            lambda c: c.execute(text(command), params or {}).rowcount,
            commit=True,
        )

    def execute_insert_returning_id(self, command: str, params: Optional[Dict[str, Any]] = None,
                                    conn: Optional[Connection] = None) -> int:
        # RETURNING works on PostgreSQL and SQLite >= 3.35
        statement = command + " RETURNING id"
        return self._run(
            "INSERT", command, conn,
            lambda c: int(c.execute(text(statement), params or {}).scalar()),
            commit=True,
        )

    def execute_batch_command(self, command: str, params_list: List[Dict[str, Any]],
                              conn: Optional[Connection] = None) -> int:
        """Same statement once per parameter set; returns total affected rows"""
        if not params_list:
            return 0
        return self._run(
            "BATCH", command, conn,
            lambda c: sum(c.execute(text(command), params).rowcount for params in params_list),
            commit=True,
        )

    @abstractmethod
    def get_by_id(self, entity_id: int) -> Optional[Dict[str, Any]]:
        ...

    @property
    @abstractmethod
    def table_name(self) -> str:
        ...

    def exists(self, entity_id: int, conn: Optional[Connection] = None) -> bool:
        return self.execute_scalar(
            f"SELECT 1 FROM {self.table_name} WHERE id = :id", {"id": entity_id}, conn
        ) is not None

    @staticmethod
    def dump_json(value: Any) -> Optional[str]:
        return None if value is None else json.dumps(value)

    @staticmethod
    def load_json(value: Any) -> Any:
        """JSON columns come back as dicts on PostgreSQL and as text on SQLite"""
        if isinstance(value, (str, bytes)):
            return json.loads(value)
        return value

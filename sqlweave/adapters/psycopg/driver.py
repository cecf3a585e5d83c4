"""psycopg 3 implementation of the pool and transaction protocols.

Statements arrive with ``$N`` placeholders and are converted to psycopg's
``%s`` style right before execution. Driver exceptions are translated into
the sqlweave hierarchy by :func:`handle_database_exceptions`, with the
original chained as ``__cause__``.
"""

from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Optional

import psycopg
from psycopg import sql as pgsql
from psycopg_pool import PoolTimeout

from sqlweave.core.parameters import numeric_to_pyformat
from sqlweave.exceptions import (
    DatabaseConnectionError,
    IntegrityError,
    RepositoryError,
    SQLParsingError,
    SQLWeaveError,
    TransactionError,
)
from sqlweave.protocols import QueryResult
from sqlweave.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from contextlib import AbstractContextManager

    from psycopg import Connection, Cursor
    from psycopg_pool import ConnectionPool

__all__ = ("PsycopgPool", "PsycopgTransaction", "handle_database_exceptions")

logger = get_logger("adapters.psycopg")


@contextmanager
def handle_database_exceptions() -> "Generator[None, None, None]":
    """Translate psycopg exceptions into sqlweave exceptions."""
    try:
        yield
    except SQLWeaveError:
        raise
    except psycopg.IntegrityError as e:
        msg = f"PostgreSQL integrity constraint violation: {e}"
        raise IntegrityError(msg) from e
    except PoolTimeout as e:
        msg = f"PostgreSQL connection pool timeout: {e}"
        raise DatabaseConnectionError(msg) from e
    except psycopg.OperationalError as e:
        error_msg = str(e).lower()
        if "syntax" in error_msg or "malformed" in error_msg:
            msg = f"PostgreSQL SQL syntax error: {e}"
            raise SQLParsingError(msg) from e
        if "connect" in error_msg or "connection" in error_msg or "auth" in error_msg:
            msg = f"PostgreSQL connection error: {e}"
            raise DatabaseConnectionError(msg) from e
        msg = f"PostgreSQL operational error: {e}"
        raise RepositoryError(msg) from e
    except psycopg.ProgrammingError as e:
        msg = f"PostgreSQL programming error: {e}"
        raise SQLParsingError(msg) from e
    except psycopg.DataError as e:
        msg = f"PostgreSQL data error: {e}"
        raise RepositoryError(msg) from e
    except psycopg.DatabaseError as e:
        error_msg = str(e).lower()
        if "transaction" in error_msg and "abort" in error_msg:
            msg = f"PostgreSQL transaction error (may need rollback): {e}"
            raise TransactionError(msg) from e
        msg = f"PostgreSQL database error: {e}"
        raise RepositoryError(msg) from e
    except psycopg.Error as e:
        msg = f"PostgreSQL error: {e}"
        raise RepositoryError(msg) from e


def _to_result(cursor: "Cursor[Any]", rows: "list[tuple[Any, ...]]") -> QueryResult:
    columns = tuple(column.name for column in cursor.description or ())
    return QueryResult(columns, rows)


def _copy_statement(table: str, columns: "Sequence[str]") -> pgsql.Composed:
    return pgsql.SQL("COPY {} ({}) FROM STDIN").format(
        pgsql.Identifier(*table.split(".")),
        pgsql.SQL(", ").join(pgsql.Identifier(column) for column in columns),
    )


class _PsycopgExecutor:
    """Statement execution shared by pools and transactions."""

    __slots__ = ()

    def _connection(self) -> "AbstractContextManager[Connection[Any]]":
        raise NotImplementedError

    def query(self, sql: str, *args: Any) -> QueryResult:
        statement, params = numeric_to_pyformat(sql, args)
        with handle_database_exceptions(), self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(statement, params or None)
            rows = cursor.fetchall() if cursor.description else []
            return _to_result(cursor, rows)

    def query_row(self, sql: str, *args: Any) -> QueryResult:
        statement, params = numeric_to_pyformat(sql, args)
        with handle_database_exceptions(), self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(statement, params or None)
            row = cursor.fetchone() if cursor.description else None
            return _to_result(cursor, [row] if row is not None else [])

    def exec(self, sql: str, *args: Any) -> int:
        statement, params = numeric_to_pyformat(sql, args)
        with handle_database_exceptions(), self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(statement, params or None)
            return max(cursor.rowcount, 0)

    def copy_from(self, table: str, columns: "Sequence[str]", rows: "Sequence[Sequence[Any]]") -> int:
        """Stream ``rows`` into ``table`` with ``COPY ... FROM STDIN``.

        Returns:
            The number of rows written.
        """
        with handle_database_exceptions(), self._connection() as conn, conn.cursor() as cursor:
            with cursor.copy(_copy_statement(table, columns)) as copy:
                for row in rows:
                    copy.write_row(row)
            return len(rows)


class PsycopgTransaction(_PsycopgExecutor):
    """A transaction holding one pooled connection until commit or rollback.

    Finishing the transaction returns the connection to the pool. A second
    ``commit``/``rollback`` after that is a no-op, so callers may always roll
    back in a ``finally`` block.
    """

    __slots__ = ("_conn", "_pool")

    def __init__(self, pool: "ConnectionPool[Any]", connection: "Connection[Any]") -> None:
        self._pool = pool
        self._conn: Optional[Connection[Any]] = connection

    @property
    def closed(self) -> bool:
        return self._conn is None

    @contextmanager
    def _connection(self) -> "Generator[Connection[Any], None, None]":
        if self._conn is None:
            msg = "transaction is already closed"
            raise TransactionError(msg)
        yield self._conn

    def _release(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            self._pool.putconn(conn)

    def commit(self) -> None:
        if self._conn is None:
            return
        try:
            with handle_database_exceptions():
                self._conn.commit()
        finally:
            self._release()

    def rollback(self) -> None:
        if self._conn is None:
            return
        try:
            with handle_database_exceptions():
                self._conn.rollback()
        finally:
            self._release()

    def begin(self) -> "PsycopgTransaction":
        msg = "nested transactions are not supported"
        raise TransactionError(msg)

    def close(self) -> None:
        self.rollback()


class PsycopgPool(_PsycopgExecutor):
    """:class:`~sqlweave.protocols.PoolProtocol` over a ``psycopg_pool.ConnectionPool``.

    Each statement borrows a connection for its own implicit transaction,
    committed when the statement succeeds.
    """

    __slots__ = ("_pool",)

    def __init__(self, pool: "ConnectionPool[Any]") -> None:
        self._pool = pool

    @property
    def pool(self) -> "ConnectionPool[Any]":
        return self._pool

    def _connection(self) -> "AbstractContextManager[Connection[Any]]":
        return self._pool.connection()

    def begin(self) -> PsycopgTransaction:
        with handle_database_exceptions():
            connection = self._pool.getconn()
        logger.debug("transaction started")
        return PsycopgTransaction(self._pool, connection)

    def close(self) -> None:
        self._pool.close()

"""Runtime-checkable protocols for the execution layer.

The relational service talks to the database only through these protocols,
so tests can substitute mocks and other drivers can be adapted without
touching the builders. Statements reach the pool with ``$N`` placeholders;
adapters convert them to their driver's native style.
"""

from typing import TYPE_CHECKING, Any, NamedTuple, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = ("PoolProtocol", "QueryResult", "TransactionProtocol")


class QueryResult(NamedTuple):
    """Column names and row tuples of one executed statement."""

    columns: "tuple[str, ...]"
    rows: "list[tuple[Any, ...]]"

    @property
    def first(self) -> "Optional[tuple[Any, ...]]":
        return self.rows[0] if self.rows else None


@runtime_checkable
class PoolProtocol(Protocol):
    """A connection pool able to run statements and start transactions."""

    def begin(self) -> "TransactionProtocol":
        """Start a transaction on a dedicated connection."""
        ...

    def query(self, sql: str, *args: Any) -> QueryResult:
        """Run a statement and return every row."""
        ...

    def query_row(self, sql: str, *args: Any) -> QueryResult:
        """Run a statement and return at most one row."""
        ...

    def exec(self, sql: str, *args: Any) -> int:
        """Run a statement and return the number of affected rows."""
        ...

    def copy_from(self, table: str, columns: "Sequence[str]", rows: "Sequence[Sequence[Any]]") -> int:
        """Bulk load ``rows`` into ``table`` with ``COPY FROM STDIN``."""
        ...

    def close(self) -> None: ...


@runtime_checkable
class TransactionProtocol(PoolProtocol, Protocol):
    """An open transaction; every statement runs on its connection."""

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

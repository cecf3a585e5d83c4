"""Generic CRUD service over a pool or an open transaction."""

import datetime
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Optional, Union

from typing_extensions import TypeVar

from sqlweave.builder._base import QueryBuilder
from sqlweave.builder._update import RawSQL
from sqlweave.builder.common import (
    count_builder,
    delete_builder,
    insert_builder,
    update_builder,
    update_each_builder,
)
from sqlweave.config import DEBUG_LEVELS, ServiceConfig
from sqlweave.core.metadata import get_insert_template, is_record_type
from sqlweave.core.pagination import format_pagination_result
from sqlweave.core.scanner import scan_row, scan_rows
from sqlweave.exceptions import NotFoundError, SQLBuilderError, TransactionError, wrap_exceptions
from sqlweave.service._transactions import rollback_quietly
from sqlweave.utils.logging import get_logger, log_query

if TYPE_CHECKING:
    from sqlweave.core.filters import Filter
    from sqlweave.core.pagination import PaginationResult
    from sqlweave.protocols import PoolProtocol, QueryResult, TransactionProtocol

__all__ = ("RelationalService", "ReturningConfig")

T = TypeVar("T", default=Any)

logger = get_logger("service")

Statement = Union[QueryBuilder, "tuple[str, Sequence[Any]]"]


@dataclass
class ReturningConfig(Generic[T]):
    """What a write operation returns.

    Attributes:
        columns: RETURNING columns; ``id`` when empty.
        destination: A record type the returned rows are scanned into, or,
            for operations touching many rows, a list extended in place with
            the scanned rows.
        record_type: Element type for a list ``destination``; rows are added
            as mappings when omitted.
    """

    columns: "Sequence[str]" = ()
    destination: "Union[type[T], list[Any], None]" = None
    record_type: "Optional[type[T]]" = None


def _check_single_destination(returning: "Optional[ReturningConfig[Any]]") -> None:
    if returning is None or returning.destination is None:
        return
    if not is_record_type(returning.destination):
        msg = "returning destination for a single-row operation must be a record type"
        raise SQLBuilderError(msg)


def _check_many_destination(returning: "Optional[ReturningConfig[Any]]") -> None:
    if returning is None or returning.destination is None:
        return
    destination = returning.destination
    if isinstance(destination, list):
        if returning.record_type is not None and not is_record_type(returning.record_type):
            msg = "returning record_type must be a record type"
            raise SQLBuilderError(msg)
        return
    if not is_record_type(destination):
        msg = "returning destination must be a record type or a list"
        raise SQLBuilderError(msg)


def _columns(returning: "Optional[ReturningConfig[Any]]") -> "tuple[str, ...]":
    return tuple(returning.columns) if returning is not None else ()


class RelationalService:
    """Executes built statements and scans the results into records.

    Every operation routes through :attr:`transaction` when one is set and
    through :attr:`pool` otherwise.

    Args:
        pool: Connection pool.
        transaction: Optional open transaction to run every statement on.
        config: Service settings.
    """

    __slots__ = ("_config", "_debug_level", "_pool", "_transaction")

    def __init__(
        self,
        pool: "PoolProtocol",
        transaction: "Optional[TransactionProtocol]" = None,
        config: "Optional[ServiceConfig]" = None,
    ) -> None:
        self._pool = pool
        self._transaction = transaction
        self._config = config or ServiceConfig()
        self._debug_level = self._config.debug_level

    def debug(self, level: int = 1) -> None:
        """Set the query echo level; anything but 1, 2 or 3 selects 1."""
        self._debug_level = level if level in DEBUG_LEVELS[1:] else 1

    @property
    def debug_level(self) -> int:
        return self._debug_level

    @property
    def pool(self) -> "PoolProtocol":
        return self._pool

    @property
    def transaction(self) -> "Optional[TransactionProtocol]":
        return self._transaction

    @transaction.setter
    def transaction(self, tx: "Optional[TransactionProtocol]") -> None:
        self._transaction = tx

    @property
    def _executor(self) -> "PoolProtocol":
        return self._transaction if self._transaction is not None else self._pool

    def commit_transaction(self) -> None:
        """Commit the current transaction, rolling back if the commit fails.

        The service falls back to the pool afterwards.

        Raises:
            TransactionError: No transaction is set.
        """
        tx = self._transaction
        if tx is None:
            msg = "no active transaction to commit"
            raise TransactionError(msg)
        try:
            tx.commit()
        except Exception:
            rollback_quietly(tx)
            raise
        finally:
            self._transaction = None

    def rollback_transaction(self) -> None:
        """Roll back the current transaction; the service falls back to the pool.

        Raises:
            TransactionError: No transaction is set.
        """
        tx = self._transaction
        if tx is None:
            msg = "no active transaction to rollback"
            raise TransactionError(msg)
        try:
            tx.rollback()
        finally:
            self._transaction = None

    def _echo(self, sql: str, args: "Sequence[Any]") -> None:
        log_query(logger, self._debug_level, sql, args, log_level=self._config.echo_level)

    def _log_failure(self, sql: str, args: "Sequence[Any]") -> None:
        if self._debug_level >= 2:
            logger.error("statement failed: %s args=%r", sql, list(args))
        else:
            logger.error("statement failed: %s", sql)

    def _query(self, sql: str, args: "Sequence[Any]") -> "QueryResult":
        self._echo(sql, args)
        try:
            return self._executor.query(sql, *args)
        except Exception:
            self._log_failure(sql, args)
            raise

    def _query_row(self, sql: str, args: "Sequence[Any]") -> "QueryResult":
        self._echo(sql, args)
        try:
            return self._executor.query_row(sql, *args)
        except Exception:
            self._log_failure(sql, args)
            raise

    def _exec(self, sql: str, args: "Sequence[Any]") -> int:
        self._echo(sql, args)
        try:
            return self._executor.exec(sql, *args)
        except Exception:
            self._log_failure(sql, args)
            raise

    def _scalar(self, sql: str, args: "Sequence[Any]") -> Any:
        row = self._query_row(sql, args).first
        if row is None:
            msg = "no rows in result set"
            raise NotFoundError(msg)
        return row[0]

    def count(self, sql: str, *args: Any) -> int:
        """Run a ``SELECT COUNT(*)`` statement and return the count."""
        return int(self._scalar(sql, args))

    def count_with_filter(self, table: str, filters: "Filter") -> int:
        sql, args = count_builder(table, filters)
        return self.count(sql, *args)

    def execute(self, sql: str, *args: Any) -> None:
        """Run a statement whose result is not needed, such as DDL or a temporary function."""
        self._exec(sql, args)

    def select_one(self, record_type: "type[T]", sql: str, *args: Any) -> T:
        """Scan the first row of a query into ``record_type``.

        Raises:
            NotFoundError: The query returned no rows.
        """
        result = self._query(sql, args)
        if not result.rows:
            msg = "no rows in result set"
            raise NotFoundError(msg)
        return scan_row(record_type, result.columns, result.rows[0])

    def select_many(self, record_type: "type[T]", sql: str, *args: Any) -> "list[T]":
        result = self._query(sql, args)
        return scan_rows(record_type, result.columns, result.rows)

    def select_paginated(
        self, query: Statement, record_type: "Optional[type[T]]" = None
    ) -> "PaginationResult[T]":
        """Run a paginated SELECT and decode its ``(data, totalRecords)`` row.

        Args:
            query: A :class:`~sqlweave.builder.SelectBuilder` with
                ``paginate`` applied, or its built ``(sql, args)`` pair.
            record_type: Record type each item is scanned into.

        Returns:
            The page.
        """
        sql, args = self._unpack(query)
        result = self._query(sql, args)
        with wrap_exceptions():
            return format_pagination_result(result, record_type)

    @staticmethod
    def _unpack(query: Statement) -> "tuple[str, Sequence[Any]]":
        if isinstance(query, QueryBuilder):
            return query.build()
        sql, args = query
        return sql, args

    def _one(self, sql: str, args: "Sequence[Any]", returning: "Optional[ReturningConfig[Any]]") -> Any:
        if returning is not None and returning.destination is not None:
            return self.select_one(returning.destination, sql, *args)  # type: ignore[arg-type]
        return self._scalar(sql, args)

    def _many(self, sql: str, args: "Sequence[Any]", returning: "Optional[ReturningConfig[Any]]") -> Any:
        if returning is None or returning.destination is None:
            return self._exec(sql, args)
        destination = returning.destination
        if isinstance(destination, list):
            result = self._query(sql, args)
            if returning.record_type is not None:
                rows: list[Any] = scan_rows(returning.record_type, result.columns, result.rows)
            else:
                rows = [dict(zip(result.columns, row)) for row in result.rows]
            destination.extend(rows)
            return len(rows)
        return self.select_many(destination, sql, *args)

    def insert_one(self, sql: str, *args: Any) -> Any:
        """Run an ``INSERT ... RETURNING id`` and return the id."""
        return self._scalar(sql, args)

    def insert_one_with_data(
        self, table: str, body: Any, returning: "Optional[ReturningConfig[Any]]" = None
    ) -> Any:
        """Insert one record.

        Returns:
            The new id, or the scanned row when ``returning`` has a destination.
        """
        _check_single_destination(returning)
        sql, args = insert_builder(
            table, body, *_columns(returning), id_generator=self._config.resolve_id_generator()
        )
        return self._one(sql, args, returning)

    def insert_many(self, sql: str, *args: Any) -> int:
        return self._exec(sql, args)

    def insert_many_with_data(
        self, table: str, body: "Sequence[Any]", returning: "Optional[ReturningConfig[Any]]" = None
    ) -> Any:
        """Insert a list of records in one statement.

        Returns:
            The affected row count; the scanned rows when ``destination`` is a
            record type; the number of rows added when it is a list.
        """
        _check_many_destination(returning)
        sql, args = insert_builder(
            table, body, *_columns(returning), id_generator=self._config.resolve_id_generator()
        )
        return self._many(sql, args, returning)

    def insert_batch(self, table: str, body: "Sequence[Any]") -> int:
        """Bulk load records with ``COPY FROM STDIN``.

        Records without an id get a generated one; ``created_at`` and
        ``updated_at`` are set to the current UTC time on the client since
        COPY cannot evaluate ``NOW()``.

        Returns:
            The number of rows written.
        """
        if isinstance(body, (str, bytes)) or not isinstance(body, Sequence):
            msg = "insert batch requires a list of records"
            raise SQLBuilderError(msg)
        if not body:
            return 0
        record_type = type(body[0])
        if not is_record_type(record_type) or any(type(record) is not record_type for record in body):
            msg = "insert batch requires records of a single type"
            raise SQLBuilderError(msg)
        template = get_insert_template(record_type)
        generator = self._config.resolve_id_generator()
        now = datetime.datetime.now(datetime.timezone.utc)
        rows = []
        for record in body:
            row: list[Any] = []
            plan = zip(template.field_names, template.use_generated_id, template.use_server_now)
            for field_name, is_id, is_now in plan:
                if is_now:
                    row.append(now)
                    continue
                value = getattr(record, field_name) if field_name is not None else None
                if is_id and not value:
                    value = generator.next_id()
                row.append(value)
            rows.append(row)
        logger.debug("copying %d rows into %s", len(rows), table)
        return self._executor.copy_from(table, template.columns, rows)

    def update_one(self, sql: str, *args: Any) -> Any:
        """Run an ``UPDATE ... RETURNING id`` and return the id."""
        return self._scalar(sql, args)

    def update_one_with_data(
        self,
        table: str,
        filters: "Filter",
        body: Any,
        returning: "Optional[ReturningConfig[Any]]" = None,
    ) -> Any:
        _check_single_destination(returning)
        sql, args = update_builder(table, filters, body, *_columns(returning))
        return self._one(sql, args, returning)

    def update_many(self, sql: str, *args: Any) -> int:
        return self._exec(sql, args)

    def update_many_with_data(
        self,
        table: str,
        filters: "Filter",
        body: Any,
        returning: "Optional[ReturningConfig[Any]]" = None,
    ) -> Any:
        _check_many_destination(returning)
        sql, args = update_builder(table, filters, body, *_columns(returning))
        return self._many(sql, args, returning)

    def update_each_with_data(
        self, table: str, row_identifier: str, filters: "Filter", body: "Sequence[Any]"
    ) -> int:
        """Give every row its own values, matched on ``row_identifier``."""
        sql, args = update_each_builder(table, row_identifier, filters, body)
        return self.update_many(sql, *args)

    @staticmethod
    def _soft_delete_values() -> "dict[str, Any]":
        return {"is_deleted": True, "deleted_at": RawSQL("NOW()")}

    def soft_delete_one(
        self, table: str, filters: "Filter", returning: "Optional[ReturningConfig[Any]]" = None
    ) -> Any:
        """Flag one row as deleted (``is_deleted``, ``deleted_at``) and return its id."""
        _check_single_destination(returning)
        sql, args = update_builder(table, filters, self._soft_delete_values(), *_columns(returning))
        return self._one(sql, args, returning)

    def soft_delete_many(
        self, table: str, filters: "Filter", returning: "Optional[ReturningConfig[Any]]" = None
    ) -> Any:
        _check_many_destination(returning)
        sql, args = update_builder(table, filters, self._soft_delete_values(), *_columns(returning))
        return self._many(sql, args, returning)

    def delete_one(self, sql: str, *args: Any) -> Any:
        """Run a ``DELETE ... RETURNING id`` and return the id."""
        return self._scalar(sql, args)

    def delete_one_with_filter(self, table: str, filters: "Filter") -> Any:
        sql, args = delete_builder(table, filters)
        return self.delete_one(sql, *args)

    def delete_many(self, sql: str, *args: Any) -> int:
        return self._exec(sql, args)

    def delete_many_with_filter(self, table: str, filters: "Filter") -> int:
        sql, args = delete_builder(table, filters)
        return self.delete_many(sql, *args)

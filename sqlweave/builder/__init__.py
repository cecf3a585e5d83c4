"""SQL statement builders.

Builders accumulate clauses and render ``(sql, args)`` with PostgreSQL
``$N`` placeholders on :meth:`~sqlweave.builder.QueryBuilder.build`.
"""

from sqlweave.builder._base import QueryBuilder, StatementKind, StatementState, SubQuery
from sqlweave.builder._delete import DeleteBuilder
from sqlweave.builder._insert import InsertBuilder
from sqlweave.builder._select import SelectBuilder
from sqlweave.builder._update import CaseClauses, RawSQL, UpdateBuilder
from sqlweave.builder.common import (
    count_builder,
    delete_builder,
    insert_builder,
    update_builder,
    update_each_builder,
)

__all__ = (
    "CaseClauses",
    "DeleteBuilder",
    "InsertBuilder",
    "QueryBuilder",
    "RawSQL",
    "SelectBuilder",
    "StatementKind",
    "StatementState",
    "SubQuery",
    "UpdateBuilder",
    "count_builder",
    "delete_builder",
    "insert_builder",
    "update_builder",
    "update_each_builder",
)

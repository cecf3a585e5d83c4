"""One-call builders for the statements services issue most often.

Each helper returns ``(sql, args)`` and raises :class:`~sqlweave.exceptions.SQLBuilderError`
when the statement cannot be built.
"""

from typing import TYPE_CHECKING, Any, Optional

from sqlweave.builder._delete import DeleteBuilder
from sqlweave.builder._insert import InsertBuilder
from sqlweave.builder._select import SelectBuilder
from sqlweave.builder._update import UpdateBuilder

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlweave.core.filters import Filter
    from sqlweave.utils.ids import IdGenerator

__all__ = ("count_builder", "delete_builder", "insert_builder", "update_builder", "update_each_builder")


def count_builder(table: str, filters: "Filter") -> "tuple[str, list[Any]]":
    """``SELECT COUNT(*) FROM table WHERE ...``."""
    return SelectBuilder.count(table).where(filters).build()


def insert_builder(
    table: str, body: Any, *returning: str, id_generator: "Optional[IdGenerator]" = None
) -> "tuple[str, list[Any]]":
    """Insert one record or a list of records."""
    return InsertBuilder(table, id_generator=id_generator).insert(body, *returning).build()


def update_builder(table: str, filters: "Filter", body: Any, *returning: str) -> "tuple[str, list[Any]]":
    """Update the rows matching ``filters`` with a record or mapping."""
    return UpdateBuilder(table).update(body).returning(*returning).where(filters).build()


def update_each_builder(
    table: str, row_identifier: str, filters: "Filter", rows: "Sequence[Any]"
) -> "tuple[str, list[Any]]":
    """Update many rows from a typed ``VALUES`` table, returning ``id``."""
    return UpdateBuilder(table).update_each(rows, row_identifier).returning("id").where(filters).build()


def delete_builder(table: str, filters: "Filter") -> "tuple[str, list[Any]]":
    """Delete the rows matching ``filters``, returning ``id``."""
    return DeleteBuilder(table).delete("id").where(filters).build()

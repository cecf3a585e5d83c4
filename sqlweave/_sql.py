"""Entry point for creating statement builders.

.. code-block:: python

    from sqlweave import Condition, sql

    query, args = (
        sql.select("id", "name")
        .from_("users")
        .where({"status": Condition("=", "active")})
        .build()
    )
"""

from typing import TYPE_CHECKING, Optional

from sqlweave.builder import DeleteBuilder, InsertBuilder, SelectBuilder, UpdateBuilder

if TYPE_CHECKING:
    from sqlweave.utils.ids import IdGenerator

__all__ = ("SQLFactory", "sql")


class SQLFactory:
    """Creates statement builders with a fluent API."""

    __slots__ = ("id_generator",)

    def __init__(self, id_generator: "Optional[IdGenerator]" = None) -> None:
        """Initialize the factory.

        Args:
            id_generator: Identifier source handed to insert builders; the
                process-wide default when omitted.
        """
        self.id_generator = id_generator

    def select(self, *columns: str) -> SelectBuilder:
        """Create a SELECT builder, selecting ``*`` when no columns are given."""
        builder = SelectBuilder()
        if columns:
            builder.select(*columns)
        return builder

    def select_from(self, record_type: type, table: str, alias: Optional[str] = None) -> SelectBuilder:
        """Create a SELECT of the default projection of ``record_type``."""
        return SelectBuilder.for_record(record_type, table, alias)

    def count(self, table: str, alias: Optional[str] = None) -> SelectBuilder:
        return SelectBuilder.count(table, alias)

    def insert_into(self, table: str, alias: Optional[str] = None) -> InsertBuilder:
        return InsertBuilder(table, alias, id_generator=self.id_generator)

    def update(self, table: str, alias: Optional[str] = None) -> UpdateBuilder:
        return UpdateBuilder(table, alias)

    def delete_from(self, table: str, alias: Optional[str] = None) -> DeleteBuilder:
        return DeleteBuilder(table, alias)


sql = SQLFactory()

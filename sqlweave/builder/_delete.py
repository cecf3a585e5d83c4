# ruff: noqa: SLF001
"""DELETE statement builder."""

from typing import Any, Optional

from typing_extensions import Self

from sqlweave.builder._base import QueryBuilder, StatementKind, join_clauses
from sqlweave.builder.mixins import CommonTableExpressionMixin, ReturningClauseMixin, WhereClauseMixin

__all__ = ("DeleteBuilder",)


class DeleteBuilder(WhereClauseMixin, CommonTableExpressionMixin, ReturningClauseMixin, QueryBuilder):
    """Builder for DELETE statements.

    The statement always ends in a RETURNING clause (``id`` by default) and
    refuses to build without a WHERE clause.

    Args:
        table: Target table.
        alias: Optional table alias.
    """

    def __init__(self, table: str, alias: Optional[str] = None) -> None:
        super().__init__(StatementKind.DELETE, table, alias)
        self._using: list[str] = []

    def delete(self, *returning: str) -> Self:
        """Start the DELETE; ``returning`` defaults to ``id``."""
        return self.returning(*returning)

    def using(self, *tables: str) -> Self:
        """Add tables to the ``USING`` list for multi-table deletes."""
        self._using.extend(tables)
        return self

    def _assemble(self) -> "tuple[str, list[Any]]":
        state = self._state
        self._require_where()
        sql = join_clauses(
            self._render_with(),
            f"DELETE FROM {state.table_ref}",
            f"USING {', '.join(self._using)}" if self._using else "",
            self._render_where(),
            self._render_returning(),
        )
        return sql, list(state.args)

# ruff: noqa: SLF001
"""INSERT statement builder.

Records are written through their cached :class:`~sqlweave.core.metadata.InsertTemplate`:
``id`` first, then every writable field, then ``updated_at`` and
``created_at`` set to ``NOW()`` on the server. A record without an
identifier gets a fresh one from the builder's :class:`~sqlweave.utils.ids.IdGenerator`.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Optional

from typing_extensions import Self

from sqlweave.builder._base import QueryBuilder, StatementKind, is_empty_value, join_clauses
from sqlweave.core.metadata import PLACEHOLDER_SLOT, get_insert_template, is_record_type
from sqlweave.core.parameters import shift_placeholders
from sqlweave.utils.ids import get_default_generator

if TYPE_CHECKING:
    from sqlweave.core.metadata import InsertTemplate
    from sqlweave.utils.ids import IdGenerator

__all__ = ("InsertBuilder",)


def _render_row(template: "InsertTemplate", row: "list[Any]", keep: "set[int]", args: "list[Any]") -> str:
    """Number the bound slots of one row, appending their values to ``args``."""
    placeholders = []
    for index, skeleton in enumerate(template.base_placeholders):
        if skeleton != PLACEHOLDER_SLOT:
            placeholders.append(skeleton)
        elif index in keep:
            args.append(row[index])
            placeholders.append(f"${len(args)}")
    return f"({','.join(placeholders)})"


class InsertBuilder(QueryBuilder):
    """Builder for INSERT statements.

    Args:
        table: Target table.
        alias: Optional table alias (rendered as ``table AS alias``).
        id_generator: Source of identifiers for records without one; the
            process-wide default when omitted.
    """

    def __init__(
        self, table: str, alias: Optional[str] = None, id_generator: "Optional[IdGenerator]" = None
    ) -> None:
        super().__init__(StatementKind.INSERT, table, alias)
        self._id_generator = id_generator
        self._template: Optional[InsertTemplate] = None
        self._rows: list[list[Any]] = []
        self._conflict = ""

    def _next_id(self) -> int:
        generator = self._id_generator or get_default_generator()
        return generator.next_id()

    def _row_values(self, template: "InsertTemplate", record: Any) -> "list[Any]":
        values: list[Any] = []
        for index, (_, field_name) in enumerate(template.value_columns):
            value = getattr(record, field_name) if field_name is not None else None
            if index == 0 and not value:
                value = self._next_id()
            values.append(value)
        return values

    def insert(self, values: Any, *returning: str) -> Self:
        """Insert one record or a non-empty sequence of records of one type.

        Identifiers are resolved immediately, so building twice yields the
        same statement.

        Args:
            values: A record instance or a sequence of them.
            *returning: RETURNING columns; ``id`` when omitted.

        Returns:
            The current builder instance for method chaining.
        """
        self._state.returning = list(returning) or ["id"]
        records = list(values) if isinstance(values, Sequence) and not isinstance(values, (str, bytes)) else [values]
        if not records:
            self._record_error("cannot insert an empty list of records")
            return self
        record_type = type(records[0])
        if not is_record_type(record_type):
            self._record_error("insert values must be a record or a list of records")
            return self
        if any(type(record) is not record_type for record in records[1:]):
            self._record_error("all records of a bulk insert must share one type")
            return self
        template = get_insert_template(record_type)
        self._template = template
        self._rows = [self._row_values(template, record) for record in records]
        return self

    def exclude_empty(self) -> Self:
        """Omit zero-valued columns (other than ``id``) from a single-row insert.

        Bulk inserts keep every column so that all rows share one column list.
        """
        self._state.exclude_empty = True
        return self

    def conflict(self, target: str, action: str) -> Self:
        """Append ``ON CONFLICT target DO action``.

        Args:
            target: Conflict target, e.g. ``(email)`` or ``ON CONSTRAINT users_pkey``.
            action: ``NOTHING`` or an ``UPDATE SET ...`` clause.

        Returns:
            The current builder instance for method chaining.
        """
        self._conflict = f"ON CONFLICT {target} DO {action}"
        return self

    def _assemble(self) -> "tuple[str, list[Any]]":
        state = self._state
        if state.filters or state.joins or state.paginated:
            self._raise_sql_builder_error("invalid insert query: cannot include filters, joins, or pagination")
        if self._template is None:
            self._raise_sql_builder_error("invalid insert query: no records to insert")
        template = self._template
        bound_columns = [column for column, _ in template.value_columns]
        quoted = dict(zip(template.columns, template.quoted_columns))
        timestamps = [column for column in template.columns if column not in bound_columns]

        keep = list(range(len(bound_columns)))
        if state.exclude_empty and len(self._rows) == 1:
            row = self._rows[0]
            keep = [index for index in keep if index == 0 or not is_empty_value(row[index])]

        args = list(state.args)
        if len(self._rows) == 1 and len(keep) == len(bound_columns):
            rendered_rows = [shift_placeholders(template.single_row_placeholder, len(args))]
            args.extend(self._rows[0])
        else:
            rendered_rows = [_render_row(template, row, set(keep), args) for row in self._rows]

        columns = [quoted[bound_columns[index]] for index in keep] + timestamps
        table = f"{state.table} AS {state.alias}" if state.alias else state.table
        sql = join_clauses(
            f"INSERT INTO {table} ({','.join(columns)}) VALUES {','.join(rendered_rows)}",
            self._conflict,
            self._render_returning(),
        )
        return sql, args

# ruff: noqa: SLF001
"""UPDATE statement builder.

Three ways to produce the SET list, combinable on one statement:

- :meth:`UpdateBuilder.update` assigns the fields of a record or the keys of a
  mapping (nested records and mappings are flattened into the same list);
- :meth:`UpdateBuilder.add_case` assigns a ``CASE WHEN ... END`` expression;
- :meth:`UpdateBuilder.update_each` joins a typed ``VALUES`` table so every
  row receives its own values.

``"updated_at" = NOW()`` is appended unless a clause already assigns
``updated_at``. A WHERE clause is mandatory.
"""

import dataclasses
import re
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Final, Optional

from typing_extensions import Self

from sqlweave.builder._base import QueryBuilder, StatementKind, is_empty_value, join_clauses
from sqlweave.builder.mixins import (
    CommonTableExpressionMixin,
    JoinClauseMixin,
    ReturningClauseMixin,
    WhereClauseMixin,
)
from sqlweave.core.filters import compile_and_group, compile_or_groups
from sqlweave.core.metadata import extract_fields, is_record_type
from sqlweave.core.parameters import splice_question_marks
from sqlweave.exceptions import SQLBuilderError
from sqlweave.utils.text import snake_case

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlweave.core.filters import MultiCondition

__all__ = ("CaseClauses", "RawSQL", "UpdateBuilder")

UPDATED_AT: Final = "updated_at"
_TYPE_NAME_RE: Final = re.compile(r"^[A-Za-z_][\w .]*(?:\(\s*\d+(?:\s*,\s*\d+)?\s*\))?(?:\[\])*$")


class RawSQL:
    """An SQL expression assigned verbatim; ``?`` markers bind ``args`` in order.

    .. code-block:: python

        builder.update({"stock": RawSQL("stock - ?", 3), "deleted_at": RawSQL("NOW()")})
    """

    __slots__ = ("args", "expression")

    def __init__(self, expression: str, *args: Any) -> None:
        self.expression = expression
        self.args = args

    def __repr__(self) -> str:
        return f"RawSQL({self.expression!r}, args={self.args!r})"


def _is_record(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _storage_column(column_tag: str, json_tag: str, name: str) -> str:
    column = column_tag or snake_case(json_tag or name)
    return column.split(".", 1)[1] if "." in column else column


class CaseClauses:
    """Collects the WHEN/ELSE branches of one ``column = CASE ... END`` assignment."""

    __slots__ = ("_args", "_branches")

    def __init__(self, args: "list[Any]") -> None:
        self._args = args
        self._branches: list[str] = []

    def _bind(self, value: Any, is_ref: bool) -> str:
        if is_ref:
            return str(value)
        self._args.append(value)
        return f"${len(self._args)}"

    def when(self, conditions: "MultiCondition", value: Any, is_ref: bool = False) -> "CaseClauses":
        """Add ``WHEN conditions THEN value``.

        Args:
            conditions: AND-group and/or OR-groups; all surviving fragments are AND-ed.
            value: Bound value, or SQL text when ``is_ref`` is true.
            is_ref: Emit ``value`` verbatim (a column or expression).

        Returns:
            This collector.
        """
        fragments = compile_and_group(self._args, conditions.and_)
        if conditions.or_:
            group = compile_or_groups(self._args, conditions.or_)
            if group:
                fragments.append(group)
        predicate = " AND ".join(fragments) or "TRUE"
        self._branches.append(f"WHEN {predicate} THEN {self._bind(value, is_ref)}")
        return self

    def else_(self, value: Any, is_ref: bool = False) -> "CaseClauses":
        self._branches.append(f"ELSE {self._bind(value, is_ref)}")
        return self

    def render(self) -> str:
        return f"CASE {' '.join(self._branches)} END"


class UpdateBuilder(
    WhereClauseMixin,
    JoinClauseMixin,
    CommonTableExpressionMixin,
    ReturningClauseMixin,
    QueryBuilder,
):
    """Builder for UPDATE statements.

    Args:
        table: Target table.
        alias: Optional table alias.
    """

    def __init__(self, table: str, alias: Optional[str] = None) -> None:
        super().__init__(StatementKind.UPDATE, table, alias)
        self._payloads: list[Any] = []
        self._set_clauses: list[str] = []
        self._cases: dict[str, str] = {}
        self._from_tables: list[str] = []
        self._values_table = ""

    def update(self, values: Any) -> Self:
        """Assign the fields of a record, or the entries of a mapping.

        Record fields map to their column tag (``table.`` prefix removed) or
        the snake-cased public name; hidden and generated fields are skipped.
        :class:`RawSQL` values are spliced as expressions. The assignments
        are rendered at build time, so :meth:`exclude_empty` may be called
        before or after.

        Args:
            values: A record instance or a mapping of column to value.

        Returns:
            The current builder instance for method chaining.
        """
        if not (_is_record(values) or isinstance(values, Mapping)):
            self._record_error(f"invalid update values: expected a record or a mapping, got {type(values).__name__}")
            return self
        self._payloads.append(values)
        return self

    def exclude_empty(self) -> Self:
        """Skip zero-valued fields and entries of :meth:`update` payloads."""
        self._state.exclude_empty = True
        return self

    def increment(self, values: "Mapping[str, Any]") -> Self:
        """Add ``"column" = "column" + $n`` for each entry (keys are snake-cased).

        Returns:
            The current builder instance for method chaining.
        """
        args = self._state.args
        for key, amount in values.items():
            column = snake_case(key)
            args.append(amount)
            self._set_clauses.append(f'"{column}" = "{column}" + ${len(args)}')
        return self

    def add_case(self, column: str, fn: "Callable[[CaseClauses], Any]") -> Self:
        """Assign ``column = CASE ... END`` built by ``fn``.

        Several columns may each get their own CASE; a column may only be
        assigned once.

        Args:
            column: Assigned column.
            fn: Receives a :class:`CaseClauses` collector.

        Returns:
            The current builder instance for method chaining.
        """
        if column in self._cases:
            self._record_error(f"CASE assignment for column {column!r} is already defined")
            return self
        clauses = CaseClauses(self._state.args)
        try:
            fn(clauses)
        except SQLBuilderError as exc:
            self._record_error(exc)
            return self
        self._cases[column] = clauses.render()
        return self

    def update_each(self, rows: "Sequence[Any]", row_identifier: str) -> Self:
        """Update many rows at once from a typed ``VALUES`` table.

        Every field of the records becomes a column of ``v``; every field
        must declare a ``transform`` SQL type used to cast its placeholder.
        The target is matched on ``prefix."row_identifier" = v."row_identifier"``.

        Args:
            rows: Non-empty sequence of records of one type.
            row_identifier: Column matching rows to the target table.

        Returns:
            The current builder instance for method chaining.
        """
        if isinstance(rows, (str, bytes)) or not isinstance(rows, Sequence) or not rows:
            self._record_error("update each requires a non-empty list of records")
            return self
        record_type = type(rows[0])
        if not is_record_type(record_type) or any(type(row) is not record_type for row in rows):
            self._record_error("update each requires records of a single type")
            return self
        metas = [
            meta
            for meta in extract_fields(record_type)
            if not meta.is_hidden and meta.column_tag != "-" and meta.json_tag != "-"
        ]
        for meta in metas:
            if not meta.transform:
                self._record_error(f"field {meta.name!r} has no transform type for update each")
                return self
            if not _TYPE_NAME_RE.match(meta.transform):
                self._record_error(f"field {meta.name!r} has an invalid transform type {meta.transform!r}")
                return self

        columns = [_storage_column(meta.column_tag, meta.json_tag, meta.name) for meta in metas]
        args = self._state.args
        rendered_rows = []
        for row in rows:
            placeholders = []
            for meta in metas:
                args.append(getattr(row, meta.name))
                placeholders.append(f"${len(args)}::{meta.transform}")
            rendered_rows.append(f"({', '.join(placeholders)})")

        self._set_clauses.extend(f'"{column}" = v."{column}"' for column in columns if column != row_identifier)
        quoted = ",".join(f'"{column}"' for column in columns)
        self._values_table = f"(VALUES {', '.join(rendered_rows)}) as v({quoted})"
        self._state.filters.append(f'{self._state.prefix}."{row_identifier}" = v."{row_identifier}"')
        return self

    def from_(self, *tables: str) -> Self:
        """Add tables to the ``FROM`` list of the update."""
        self._from_tables.extend(tables)
        return self

    def _assign_record(self, record: Any, args: "list[Any]", clauses: "list[str]") -> None:
        for meta in extract_fields(type(record)):
            if meta.json_tag == "-" or meta.column_tag == "-" or meta.is_generated:
                continue
            value = getattr(record, meta.name)
            if self._state.exclude_empty and is_empty_value(value):
                continue
            if _is_record(value) or isinstance(value, Mapping):
                self._assign(value, args, clauses)
                continue
            column = _storage_column(meta.column_tag, meta.json_tag, meta.name)
            clauses.append(self._assignment(column, value, args))

    def _assign(self, values: Any, args: "list[Any]", clauses: "list[str]") -> None:
        if _is_record(values):
            self._assign_record(values, args, clauses)
            return
        for column, value in values.items():
            if self._state.exclude_empty and is_empty_value(value):
                continue
            if _is_record(value) or isinstance(value, Mapping):
                self._assign(value, args, clauses)
                continue
            clauses.append(self._assignment(str(column), value, args))

    @staticmethod
    def _assignment(column: str, value: Any, args: "list[Any]") -> str:
        if isinstance(value, RawSQL):
            return f'"{column}" = {splice_question_marks(value.expression, args, value.args)}'
        args.append(value)
        return f'"{column}" = ${len(args)}'

    def _assemble(self) -> "tuple[str, list[Any]]":
        state = self._state
        args = list(state.args)
        clauses: list[str] = []
        for payload in self._payloads:
            self._assign(payload, args, clauses)
        clauses.extend(self._set_clauses)
        clauses.extend(f"{column} = {expression}" for column, expression in self._cases.items())
        if not clauses:
            self._raise_sql_builder_error("invalid update query: nothing to update")
        assigned = {clause.split("=", 1)[0].strip().strip('"') for clause in clauses}
        if UPDATED_AT not in assigned:
            clauses.append(f'"{UPDATED_AT}" = NOW()')
        self._require_where()

        sources = [source for source in (self._values_table, *self._from_tables) if source]
        sql = join_clauses(
            self._render_with(),
            f"UPDATE {state.table_ref} SET {', '.join(clauses)}",
            f"FROM {', '.join(sources)}" if sources else "",
            " ".join(state.joins),
            self._render_where(),
            self._render_returning(),
        )
        return sql, args

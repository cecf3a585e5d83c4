# ruff: noqa: SLF001
"""SELECT statement builder.

.. code-block:: python

    sql, args = (
        SelectBuilder("users u")
        .select("u.id", 'u.full_name AS "fullName"')
        .where({"u.status": Condition("=", "active")})
        .order_by(["fullName"], asc=True)
        .limit(20)
        .build()
    )
    # SELECT u.id,u.full_name AS "fullName" FROM users u WHERE "u"."status" = $1
    #   ORDER BY u.full_name ASC NULLS FIRST LIMIT 20
"""

import re
from typing import TYPE_CHECKING, Any, Final, Optional

from typing_extensions import Self

from sqlweave.builder._base import QueryBuilder, StatementKind, extract_alias, join_clauses
from sqlweave.builder.mixins import (
    CommonTableExpressionMixin,
    HavingClauseMixin,
    JoinClauseMixin,
    JsonAggregationMixin,
    UnionAllMixin,
    WhereClauseMixin,
)
from sqlweave.core.metadata import default_columns
from sqlweave.core.pagination import ArrayAggConfig, Pagination, Sort
from sqlweave.core.parameters import placeholder_indexes

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

__all__ = ("SelectBuilder",)

_AS_SPLIT_RE: Final = re.compile(r"\s+AS\s+", re.IGNORECASE)
_SORT_SUFFIX_RE: Final = re.compile(
    r"(?P<direction>\s+(?:ASC|DESC))?(?P<nulls>\s+NULLS\s+(?:FIRST|LAST))?\s*$", re.IGNORECASE
)
_TABLE_ALIAS_RE: Final = re.compile(
    r"^(?P<name>.+?)(?:\s+(?:AS\s+)?(?P<alias>[A-Za-z_]\w*))?$", re.IGNORECASE | re.DOTALL
)


def _clean_identifier(text: str) -> str:
    text = text.strip().rstrip(",").strip()
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':  # noqa: PLR2004
        text = text[1:-1]
    return text


def _split_top_level(text: str) -> "list[str]":
    """Split on commas outside parentheses and quotes."""
    parts: list[str] = []
    depth = 0
    quote = ""
    current: list[str] = []
    for char in text:
        if quote:
            if char == quote:
                quote = ""
        elif char in "'\"":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char == "," and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def _alias_map(columns: "Iterable[str]") -> "dict[str, str]":
    """Map lower-cased select aliases (and bare columns) to their expressions."""
    aliases: dict[str, str] = {}
    for column in columns:
        column = column.strip()
        matches = list(_AS_SPLIT_RE.finditer(column))
        if matches:
            last = matches[-1]
            aliases[_clean_identifier(column[last.end() :]).lower()] = column[: last.start()].strip()
        else:
            identifier = _clean_identifier(column)
            aliases[identifier.lower()] = identifier
    return aliases


def _resolve_sort_rule(rule: str, aliases: "dict[str, str]") -> str:
    rule = rule.strip()
    suffix_match = _SORT_SUFFIX_RE.search(rule)
    suffix = ""
    if suffix_match is not None:
        suffix = "".join(part for part in (suffix_match.group("direction"), suffix_match.group("nulls")) if part)
        rule = rule[: suffix_match.start()]
    resolved = []
    for key in _split_top_level(rule):
        cleaned = _clean_identifier(key)
        resolved.append(aliases.get(cleaned.lower(), cleaned))
    return ", ".join(resolved) + suffix


def _alias_index(items: "list[str]", item: str, alias: Optional[str] = None) -> Optional[int]:
    key = (alias if alias is not None else extract_alias(item)).lower()
    if key:
        for index, existing in enumerate(items):
            if extract_alias(existing) == key:
                return index
    return None


def _replace_or_append(items: "list[str]", item: str, alias: Optional[str] = None) -> None:
    """Replace the entry carrying the same alias, otherwise append."""
    index = _alias_index(items, item, alias)
    if index is None:
        items.append(item)
    else:
        items[index] = item


class SelectBuilder(
    WhereClauseMixin,
    HavingClauseMixin,
    JoinClauseMixin,
    CommonTableExpressionMixin,
    UnionAllMixin,
    JsonAggregationMixin,
    QueryBuilder,
):
    """Builder for SELECT statements.

    Args:
        table: Table to select from, optionally followed by an alias
            (``"users u"``).
        alias: Table alias; overrides an alias written in ``table``.
        record_type: Record type whose default projection seeds the columns.
    """

    def __init__(
        self, table: Optional[str] = None, alias: Optional[str] = None, record_type: Optional[type] = None
    ) -> None:
        super().__init__(StatementKind.SELECT)
        self.from_(table or "", alias)
        if record_type is not None:
            self.select(*default_columns(record_type))

    @classmethod
    def for_record(cls, record_type: type, table: str, alias: Optional[str] = None) -> "SelectBuilder":
        """Select the default projection of ``record_type`` from ``table``."""
        return cls(table, alias, record_type=record_type)

    @classmethod
    def count(cls, table: str, alias: Optional[str] = None) -> "SelectBuilder":
        """``SELECT COUNT(*) FROM table``; add filters before building."""
        return cls(table, alias).select("COUNT(*)")

    def from_(self, table: str, alias: Optional[str] = None) -> Self:
        """Set the source table.

        Args:
            table: Table name, optionally followed by an alias.
            alias: Explicit alias.

        Returns:
            The current builder instance for method chaining.
        """
        match = _TABLE_ALIAS_RE.match(table.strip())
        name, written_alias = (match.group("name"), match.group("alias")) if match else ("", None)
        self._state.table = name
        self._state.alias = alias or written_alias or None
        return self

    def select(self, *columns: str) -> Self:
        """Add select items; an item whose alias is already selected replaces it.

        Returns:
            The current builder instance for method chaining.
        """
        for column in columns:
            self._add_column(column)
        return self

    def _add_column(self, item: str, alias: Optional[str] = None) -> bool:
        """Place a select item unless it would replace one holding bound arguments."""
        columns = self._state.columns
        index = _alias_index(columns, item, alias)
        if index is not None and placeholder_indexes(columns[index]):
            self._record_error(f"cannot replace select item {columns[index]!r}: its arguments are already bound")
            return False
        _replace_or_append(columns, item, alias)
        return True

    def clear_selects(self) -> Self:
        if any(placeholder_indexes(column) for column in self._state.columns):
            self._record_error("cannot clear select items whose arguments are already bound")
            return self
        self._state.columns = []
        return self

    def distinct(self, alias: str, *columns: str) -> Self:
        """Render ``DISTINCT ON (columns) alias`` ahead of the other select items.

        Args:
            alias: First projected expression of the DISTINCT ON item.
            *columns: DISTINCT ON expressions; an aliased repeat replaces the
                earlier one.

        Returns:
            The current builder instance for method chaining.
        """
        self._state.distinct_alias = alias
        for column in columns:
            _replace_or_append(self._state.distinct_on, column)
        return self

    def _select_with_args(self, expression: str, alias: str, args: "Sequence[Any]") -> Self:
        if self._add_column(f'{expression} AS "{alias}"', alias):
            self._state.args.extend(args)
        return self

    def select_bool_and(self, expression: str, alias: str, *args: Any) -> Self:
        """Select ``bool_and(expression) AS "alias"``.

        ``args`` bind placeholders the caller wrote into ``expression``,
        numbered from ``current_arg_index() + 1``.
        """
        return self._select_with_args(f"bool_and({expression})", alias, args)

    def select_bool_or(self, expression: str, alias: str, *args: Any) -> Self:
        """Select ``bool_or(expression) AS "alias"`` (see :meth:`select_bool_and`)."""
        return self._select_with_args(f"bool_or({expression})", alias, args)

    def select_case_when(self, then: str, else_: str, alias: str, when: str, *args: Any) -> Self:
        """Select ``CASE WHEN when THEN then ELSE else_ END AS "alias"``.

        Returns:
            The current builder instance for method chaining.
        """
        return self._select_with_args(f"CASE WHEN {when} THEN {then} ELSE {else_} END", alias, args)

    def select_array_aggregation(self, alias: str, source: str, config: ArrayAggConfig) -> Self:
        """Select ``(SELECT array_agg(expr [ORDER BY ...]) [FROM source]) AS "alias"``.

        Args:
            alias: Output column name.
            source: Optional FROM clause of the inner select.
            config: Aggregated expression and its ordering.

        Returns:
            The current builder instance for method chaining.
        """
        if not config.expr:
            self._record_error("array aggregation expression must not be empty")
            return self
        ordering = ""
        if config.sort_by and config.sort_order:
            ordering = f" ORDER BY {config.sort_by} {'ASC' if config.sort_order > 0 else 'DESC'}"
        from_clause = f" FROM {source}" if source else ""
        return self._select_with_args(f"(SELECT array_agg({config.expr}{ordering}){from_clause})", alias, ())

    def group_by(self, *columns: str) -> Self:
        self._state.grouping.extend(columns)
        return self

    def order_by(self, columns: "Sequence[str]", asc: bool = True) -> Self:
        """Queue one sort rule: ``c1, c2 ASC NULLS FIRST`` or ``... DESC NULLS LAST``.

        Keys naming a selected alias are rewritten to the aliased expression
        when the statement is built.

        Returns:
            The current builder instance for method chaining.
        """
        direction = "ASC NULLS FIRST" if asc else "DESC NULLS LAST"
        self._state.order_rules.append(f"{', '.join(columns)} {direction}")
        return self

    def _apply_sorts(self, sorts: "Sequence[Sort]") -> None:
        self._state.order_rules = []
        for sort in sorts:
            self.order_by([sort.sort_by], sort.sort_order > 0)

    def paginate(self, pagination: Pagination) -> Self:
        """Switch to the fused pagination query for the requested page.

        A single ``sort_by`` is appended to the queued sort rules; otherwise
        ``multi_sort`` (or, failing that, ``default_sort``) replaces them.

        Args:
            pagination: Page request; pages are 1-based.

        Returns:
            The current builder instance for method chaining.
        """
        state = self._state
        state.paginated = True
        state.limit = pagination.limit
        state.offset = pagination.offset
        if pagination.sort_by and pagination.sort_order:
            self.order_by([pagination.sort_by], pagination.sort_order > 0)
        elif pagination.multi_sort:
            self._apply_sorts(pagination.multi_sort)
        elif pagination.default_sort:
            self._apply_sorts(pagination.default_sort)
        return self

    def limit(self, limit: int) -> Self:
        """Set LIMIT and reset OFFSET to zero."""
        self._state.limit = limit
        self._state.offset = 0
        return self

    def offset(self, offset: int) -> Self:
        self._state.offset = offset
        return self

    def start_placeholder_from(self, index: int) -> Self:
        """Pad the arguments with ``None`` so the next bound argument is ``$index``.

        Used when the statement text is appended to SQL that already uses
        ``$1`` .. ``$index-1``.

        Returns:
            The current builder instance for method chaining.
        """
        padding = max(index, 1) - 1 - len(self._state.args)
        if padding > 0:
            self._state.args.extend([None] * padding)
        return self

    def _render_columns(self) -> str:
        state = self._state
        columns = list(state.columns) or ["*"]
        if state.distinct_on:
            head = f"DISTINCT ON ({','.join(state.distinct_on)})"
            if state.distinct_alias:
                columns.insert(0, f"{head} {state.distinct_alias}")
            else:
                columns[0] = f"{head} {columns[0]}"
        return ",".join(columns)

    def _render_select(self) -> str:
        state = self._state
        if state.union_all:
            return " UNION ALL ".join(state.union_parts)
        select = f"SELECT {self._render_columns()}"
        return f"{select} FROM {state.table_ref}" if state.table else select

    def _render_order(self) -> str:
        state = self._state
        if not state.order_rules:
            return ""
        aliases = _alias_map(state.columns)
        return f"ORDER BY {', '.join(_resolve_sort_rule(rule, aliases) for rule in state.order_rules)}"

    def _render_group(self) -> str:
        return f"GROUP BY {', '.join(self._state.grouping)}" if self._state.grouping else ""

    def _render_having(self) -> str:
        return f"HAVING {' AND '.join(self._state.having)}" if self._state.having else ""

    def _assemble(self) -> "tuple[str, list[Any]]":
        state = self._state
        if state.having and not state.grouping:
            self._raise_sql_builder_error("HAVING clauses are only allowed together with a GROUP BY clause")
        if state.paginated:
            return self._assemble_paginated(), list(state.args)

        joins = " ".join(state.joins)
        sql = join_clauses(
            self._render_with(),
            self._render_select(),
            joins,
            self._render_where(),
            self._render_group(),
            self._render_having(),
            self._render_order(),
            f"LIMIT {state.limit}" if state.limit > 0 else "",
            f"OFFSET {state.offset}" if state.offset > 0 else "",
        )
        return sql, list(state.args)

    def _assemble_paginated(self) -> str:
        state = self._state
        if state.union_all:
            self._raise_sql_builder_error("pagination is not supported for UNION ALL statements")
        if not state.table:
            self._raise_sql_builder_error("pagination requires a table to select from")
        prefix = state.prefix
        joins = " ".join(state.joins)
        group, having, order = self._render_group(), self._render_having(), self._render_order()

        filtered = join_clauses(
            f"SELECT {prefix}.id as id FROM {state.table_ref}", joins, self._render_where(), group, having, order
        )
        paginated = join_clauses(
            "SELECT id as id FROM filtered_ids",
            f"LIMIT {state.limit}" if state.limit > 0 else "",
            f"OFFSET {state.offset}",
        )
        data = join_clauses(
            self._render_select(),
            joins,
            f"JOIN paginated_ids ON paginated_ids.id = {prefix}.id",
            group,
            having,
            order,
        )
        ctes = [
            *state.ctes,
            f"filtered_ids AS ({filtered})",
            f"paginated_ids AS ({paginated})",
            "total_query AS (SELECT COUNT(id) FROM filtered_ids)",
            f"data_query AS ({data})",
        ]
        keyword = "WITH RECURSIVE" if state.recursive else "WITH"
        return (
            f"{keyword} {', '.join(ctes)} "
            "SELECT COALESCE((SELECT jsonb_agg(data_query) FROM data_query), '[]') AS data, "
            '(SELECT count FROM total_query) AS "totalRecords"'
        )

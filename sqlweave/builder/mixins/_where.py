# ruff: noqa: SLF001
from typing import TYPE_CHECKING, cast

from typing_extensions import Self

from sqlweave.core.filters import compile_and_group, compile_or_groups
from sqlweave.exceptions import SQLBuilderError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlweave.builder.protocols import BuilderProtocol
    from sqlweave.core.filters import Filter

__all__ = ("HavingClauseMixin", "WhereClauseMixin")


class WhereClauseMixin:
    """Mixin providing WHERE clause methods."""

    def where(self, filters: "Filter") -> Self:
        """AND every condition of ``filters`` into the WHERE clause.

        Conditions whose value is ``None`` are skipped (null checks excepted).

        Args:
            filters: Mapping of column to condition.

        Returns:
            The current builder instance for method chaining.
        """
        builder = cast("BuilderProtocol", self)
        try:
            builder._state.filters.extend(compile_and_group(builder._state.args, filters))
        except SQLBuilderError as exc:
            builder._record_error(exc)
        return self

    def where_or(self, *groups: "Filter") -> Self:
        """Add one fragment OR-ing the given AND-groups: ``((a AND b) OR (c))``.

        Returns:
            The current builder instance for method chaining.
        """
        builder = cast("BuilderProtocol", self)
        try:
            fragment = compile_or_groups(builder._state.args, groups)
        except SQLBuilderError as exc:
            builder._record_error(exc)
            return self
        if fragment:
            builder._state.filters.append(fragment)
        return self

    def search(self, keyword: str, fields: "Sequence[str]") -> Self:
        """Case-insensitive substring search across ``fields``.

        A field suffixed with ``:array`` is a text array searched element-wise.
        Each field binds its own ``%keyword%`` argument; the clauses are OR-ed
        into one filter fragment.

        Returns:
            The current builder instance for method chaining.
        """
        builder = cast("BuilderProtocol", self)
        if not keyword or not fields:
            return self
        args = builder._state.args
        clauses = []
        for field in fields:
            args.append(f"%{keyword}%")
            if field.endswith(":array"):
                column = field[: -len(":array")]
                clauses.append(f"EXISTS (SELECT 1 FROM unnest({column}) as val WHERE val ILIKE ${len(args)})")
            else:
                clauses.append(f"{field} ILIKE ${len(args)}")
        builder._state.filters.append(f"({' OR '.join(clauses)})")
        return self


class HavingClauseMixin:
    """Mixin providing the HAVING clause for SELECT builders."""

    def having(self, filters: "Filter") -> Self:
        """AND ``filters`` into the HAVING clause (requires a GROUP BY at build time).

        Returns:
            The current builder instance for method chaining.
        """
        builder = cast("BuilderProtocol", self)
        try:
            builder._state.having.extend(compile_and_group(builder._state.args, filters))
        except SQLBuilderError as exc:
            builder._record_error(exc)
        return self

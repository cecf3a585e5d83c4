# ruff: noqa: SLF001
from typing import TYPE_CHECKING, cast

from typing_extensions import Self

from sqlweave.core.filters import compile_and_group
from sqlweave.exceptions import SQLBuilderError

if TYPE_CHECKING:
    from sqlweave.builder._base import SubQuery
    from sqlweave.builder.protocols import BuilderProtocol
    from sqlweave.core.filters import Filter

__all__ = ("JoinClauseMixin",)


def _join_condition(builder: "BuilderProtocol", on: str, conditions: "tuple[Filter, ...]") -> str:
    fragments = [on]
    for condition in conditions:
        try:
            fragments.extend(compile_and_group(builder._state.args, condition))
        except SQLBuilderError as exc:
            builder._record_error(exc)
    return " AND ".join(fragment for fragment in fragments if fragment)


class JoinClauseMixin:
    """Mixin providing JOIN clause methods."""

    def _add_join(self, join_type: str, table: str, on: str, conditions: "tuple[Filter, ...]") -> Self:
        builder = cast("BuilderProtocol", self)
        if not table:
            return self
        builder._state.joins.append(f"{join_type} {table} ON {_join_condition(builder, on, conditions)}")
        return self

    def join(self, table: str, on: str, *conditions: "Filter") -> Self:
        """Add ``JOIN table ON on``; each extra filter is AND-ed onto the ON clause.

        Args:
            table: Joined table, optionally followed by an alias.
            on: Join condition text.
            *conditions: Extra conditions compiled with bound arguments.

        Returns:
            The current builder instance for method chaining.
        """
        return self._add_join("JOIN", table, on, conditions)

    def left_join(self, table: str, on: str, *conditions: "Filter") -> Self:
        """Add ``LEFT JOIN table ON on`` (see :meth:`join`)."""
        return self._add_join("LEFT JOIN", table, on, conditions)

    def left_join_lateral(self, name: str, query: "SubQuery", on: str, *conditions: "Filter") -> Self:
        """Add ``LEFT JOIN LATERAL (subquery) name ON on``.

        The subquery's placeholders are shifted into this statement's
        argument space before its text is spliced in.

        Args:
            name: Alias of the lateral subquery.
            query: A builder or a ``(sql, args)`` pair.
            on: Join condition text.
            *conditions: Extra conditions compiled with bound arguments.

        Returns:
            The current builder instance for method chaining.
        """
        builder = cast("BuilderProtocol", self)
        text = builder._compile_subquery(query)
        if text is None:
            return self
        condition = _join_condition(builder, on, conditions)
        builder._state.joins.append(f"LEFT JOIN LATERAL ({text}) {name} ON {condition}")
        return self

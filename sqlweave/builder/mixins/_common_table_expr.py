# ruff: noqa: SLF001
from typing import TYPE_CHECKING, cast

from typing_extensions import Self

if TYPE_CHECKING:
    from sqlweave.builder._base import SubQuery
    from sqlweave.builder.protocols import BuilderProtocol

__all__ = ("CommonTableExpressionMixin",)


class CommonTableExpressionMixin:
    """Mixin providing WITH clause (Common Table Expressions) support."""

    def with_cte(self, name: str, query: "SubQuery") -> Self:
        """Attach ``name AS (query)`` to the WITH clause.

        Args:
            name: CTE name.
            query: A builder (built on the spot) or a ``(sql, args)`` pair.

        Returns:
            The current builder instance for method chaining.
        """
        builder = cast("BuilderProtocol", self)
        text = builder._compile_subquery(query)
        if text is not None:
            builder._state.ctes.append(f"{name} AS ({text})")
        return self

    def with_recursive_cte(self, name: str, query: "SubQuery") -> Self:
        """Like :meth:`with_cte`, and renders the clause as ``WITH RECURSIVE``."""
        builder = cast("BuilderProtocol", self)
        builder._state.recursive = True
        return self.with_cte(name, query)

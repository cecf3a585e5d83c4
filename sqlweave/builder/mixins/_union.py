# ruff: noqa: SLF001
from typing import TYPE_CHECKING, cast

from typing_extensions import Self

if TYPE_CHECKING:
    from sqlweave.builder._base import SubQuery
    from sqlweave.builder.protocols import BuilderProtocol

__all__ = ("UnionAllMixin",)


class UnionAllMixin:
    """Mixin composing a SELECT out of ``UNION ALL`` parts."""

    def union_all(self, *queries: "SubQuery") -> Self:
        """Switch to UNION ALL mode and append each query as one part.

        In this mode the parts replace the statement's own ``SELECT ... FROM``;
        WITH, ORDER BY and LIMIT still apply to the whole union.

        Returns:
            The current builder instance for method chaining.
        """
        builder = cast("BuilderProtocol", self)
        if queries:
            builder._state.union_all = True
        for query in queries:
            text = builder._compile_subquery(query)
            if text is not None:
                builder._state.union_parts.append(text)
        return self

# ruff: noqa: SLF001
from typing import TYPE_CHECKING, cast

from typing_extensions import Self

if TYPE_CHECKING:
    from sqlweave.builder.protocols import BuilderProtocol

__all__ = ("ReturningClauseMixin",)


class ReturningClauseMixin:
    """Mixin providing the RETURNING clause of mutating statements."""

    def returning(self, *columns: str) -> Self:
        """Set the RETURNING columns (``id`` when none are given).

        Returns:
            The current builder instance for method chaining.
        """
        builder = cast("BuilderProtocol", self)
        builder._state.returning = list(columns) or ["id"]
        return self

# ruff: noqa: SLF001
"""Statement state and the abstract query builder.

Every builder wraps one :class:`StatementState`, the mutable accumulator of
clause fragments and positional arguments. Clause methods append SQL text and
arguments in the same step, so the ``$N`` numbering always matches the
argument list. Problems found while chaining are recorded on the state and
raised by :meth:`QueryBuilder.build`; the first recorded error wins.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Final, NoReturn, Optional, Union

from typing_extensions import Self

from sqlweave.core.parameters import shift_placeholders
from sqlweave.exceptions import SQLBuilderError
from sqlweave.utils.logging import get_logger

if TYPE_CHECKING:
    from typing_extensions import TypeAlias

__all__ = (
    "QueryBuilder",
    "StatementKind",
    "StatementState",
    "SubQuery",
    "extract_alias",
    "is_empty_value",
    "join_clauses",
)

logger = get_logger("builder")

SubQuery: "TypeAlias" = Union["QueryBuilder", tuple[str, Sequence[Any]]]

_ALIAS_SEPARATOR: Final = " as "
_EMPTY_TYPES: Final = (str, bytes, int, float, Decimal, list, tuple, dict, set, frozenset)


class StatementKind(str, Enum):
    """Discriminator for the four statement kinds sharing one state."""

    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class StatementState:
    """Accumulated clauses and arguments of one statement.

    Only the fields relevant to ``kind`` are rendered; the rest stay empty.
    """

    kind: StatementKind
    table: str = ""
    alias: Optional[str] = None
    columns: list[str] = field(default_factory=list)
    distinct_on: list[str] = field(default_factory=list)
    distinct_alias: str = ""
    filters: list[str] = field(default_factory=list)
    having: list[str] = field(default_factory=list)
    joins: list[str] = field(default_factory=list)
    ctes: list[str] = field(default_factory=list)
    recursive: bool = False
    union_parts: list[str] = field(default_factory=list)
    union_all: bool = False
    grouping: list[str] = field(default_factory=list)
    order_rules: list[str] = field(default_factory=list)
    limit: int = 0
    offset: int = 0
    paginated: bool = False
    args: list[Any] = field(default_factory=list)
    error: Optional[SQLBuilderError] = None
    returning: list[str] = field(default_factory=list)
    exclude_empty: bool = False
    nested_pairs: Optional[list[str]] = None

    @property
    def table_ref(self) -> str:
        """Table as written after FROM/UPDATE: ``users`` or ``users u``."""
        return f"{self.table} {self.alias}" if self.alias else self.table

    @property
    def prefix(self) -> str:
        """Qualifier used for the primary key: the alias when set, else the table."""
        return self.alias or self.table


def extract_alias(column: str) -> str:
    """Return the lower-cased alias of a select item, or ``""`` when it has none.

    ``'COUNT(*) AS "Total"'`` yields ``total``; ``name`` yields ``""``.
    """
    parts = column.lower().split(_ALIAS_SEPARATOR)
    if len(parts) < 2:  # noqa: PLR2004
        return ""
    return parts[-1].strip().strip('"')


def is_empty_value(value: Any) -> bool:
    """Zero-value test used by the exclude-empty modes."""
    if value is None:
        return True
    return isinstance(value, _EMPTY_TYPES) and not value


class QueryBuilder(ABC):
    """Abstract base class for statement builders.

    Args:
        kind: Statement kind rendered by :meth:`build`.
        table: Target table.
        alias: Optional table alias.
    """

    def __init__(self, kind: StatementKind, table: Optional[str] = None, alias: Optional[str] = None) -> None:
        self._state = StatementState(kind=kind, table=table or "", alias=alias or None)

    @property
    def kind(self) -> StatementKind:
        return self._state.kind

    @staticmethod
    def _raise_sql_builder_error(message: str, cause: Optional[BaseException] = None) -> NoReturn:
        """Raise :class:`SQLBuilderError`, chaining ``cause`` when given."""
        raise SQLBuilderError(message) from cause

    def _record_error(self, error: Union[SQLBuilderError, str]) -> None:
        """Remember a construction error for :meth:`build`; the first one wins."""
        if isinstance(error, str):
            error = SQLBuilderError(error)
        if self._state.error is None:
            logger.debug("Deferring builder error: %s", error)
            self._state.error = error

    def _compile_subquery(self, query: SubQuery) -> Optional[str]:
        """Build ``query`` into this statement's argument space.

        The sub-statement's placeholders are shifted past the arguments
        already held here and its arguments are appended.

        Returns:
            The renumbered text, or ``None`` when the sub-statement failed
            (the failure is recorded).
        """
        if isinstance(query, QueryBuilder):
            try:
                sub_sql, sub_args = query.build()
            except SQLBuilderError as exc:
                self._record_error(exc)
                return None
        else:
            sub_sql, sub_args = query
        shifted = shift_placeholders(sub_sql, len(self._state.args))
        self._state.args.extend(sub_args)
        return shifted

    def current_arg_index(self) -> int:
        """Number of arguments bound so far (the last ``$N`` issued)."""
        return len(self._state.args)

    def add_args(self, *args: Any) -> Self:
        """Append arguments for placeholders written by hand."""
        self._state.args.extend(args)
        return self

    def _render_with(self) -> str:
        state = self._state
        if not state.ctes:
            return ""
        keyword = "WITH RECURSIVE" if state.recursive else "WITH"
        return f"{keyword} {', '.join(state.ctes)}"

    def _render_where(self) -> str:
        return f"WHERE {' AND '.join(self._state.filters)}" if self._state.filters else ""

    def _render_returning(self) -> str:
        return f"RETURNING {', '.join(self._state.returning or ['id'])}"

    def _require_where(self) -> None:
        if not self._state.filters:
            self._raise_sql_builder_error("unsafe query: DELETE/UPDATE must have WHERE clause")

    @abstractmethod
    def _assemble(self) -> "tuple[str, list[Any]]":
        """Render the statement without touching the builder's state.

        Returns:
            The statement text and its argument list.
        """

    def build(self) -> "tuple[str, list[Any]]":
        """Render the statement.

        Raises:
            SQLBuilderError: A construction error was recorded while chaining,
                or the accumulated clauses violate a safety rule.

        Returns:
            Tuple of SQL text and positional arguments.
        """
        if self._state.error is not None:
            error = self._state.error
            raise SQLBuilderError(str(error)) from error
        sql, args = self._assemble()
        return sql, args

    def __str__(self) -> str:
        try:
            return self.build()[0]
        except SQLBuilderError:
            return super().__str__()


def join_clauses(*parts: str) -> str:
    """Join non-empty clause texts with a single space."""
    return " ".join(part for part in parts if part)

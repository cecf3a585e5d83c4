"""Filter compilation.

A filter is a mapping of column (or case key) to :class:`Condition`; all of
its conditions are AND-ed. A list of filters is OR-ed. Compiling a filter
appends fragments to a caller-provided list and values to the statement's
running argument list in the same pass, so fragment text and argument order
never drift apart.

Example:
    .. code-block:: python

        args: list[Any] = []
        compile_and_group(
            args,
            {
                "age": Condition(">", 18),
                "status": Condition("IN", ["active", "pending"]),
            },
        )
        # ['"age" > $1', '"status" IN ($2, $3)'], args == [18, "active", "pending"]
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Union

from sqlweave.core.parameters import quote_column, splice_question_marks
from sqlweave.exceptions import SQLBuilderError

if TYPE_CHECKING:
    from typing_extensions import TypeAlias

__all__ = (
    "Condition",
    "Filter",
    "MultiCondition",
    "Operator",
    "compile_and_group",
    "compile_condition",
    "compile_or_groups",
)


class Operator(str, Enum):
    """Comparison operators understood by the filter compiler."""

    EQ = "="
    NEQ = "!="
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    REGEX = "~"
    IREGEX = "~*"
    NOT_REGEX = "!~"
    NOT_IREGEX = "!~*"
    IN = "IN"
    NOT_IN = "NOT IN"
    ANY = "ANY"
    LIKE = "LIKE"
    NOT_LIKE = "NOT LIKE"
    ILIKE = "ILIKE"
    NOT_ILIKE = "NOT ILIKE"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"
    BETWEEN = "BETWEEN"
    NOT_BETWEEN = "NOT BETWEEN"
    EXISTS = "EXISTS"
    NOT_EXISTS = "NOT EXISTS"
    RAW = "__RAW__"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: "Union[Operator, str]") -> "Operator":
        if isinstance(value, Operator):
            return value
        try:
            return cls(" ".join(str(value).split()).upper())
        except ValueError:
            msg = f"unknown SQL operator: {value!r}"
            raise SQLBuilderError(msg) from None


NULL_CHECKS = frozenset({Operator.IS_NULL, Operator.IS_NOT_NULL})
RANGE_OPERATORS = frozenset({Operator.BETWEEN, Operator.NOT_BETWEEN})
SET_OPERATORS = frozenset({Operator.IN, Operator.NOT_IN, Operator.ANY})


@dataclass
class Condition:
    """One comparison against a column.

    ``value=None`` means "no filter" and the condition is skipped, except for
    the null checks which never take a value.

    Attributes:
        operator: Comparison operator; strings are parsed into :class:`Operator`.
        value: Right-hand side (scalar, sequence, SQL text for references,
            subqueries and raw fragments).
        key: Element key for matching inside a JSONB array of objects.
        is_ref: ``value`` is a column or expression emitted verbatim.
        source_is_value: The column text itself is bound as a parameter.
        is_subquery: ``value`` is a subquery emitted verbatim.
        is_epoch_time: Range bounds are epoch milliseconds.
        is_array: The column is a JSONB array matched element-wise on ``key``.
        extra_args: Values bound to the ``?`` markers of a raw fragment.
    """

    operator: "Union[Operator, str]"
    value: Any = None
    key: str = ""
    is_ref: bool = False
    source_is_value: bool = False
    is_subquery: bool = False
    is_epoch_time: bool = False
    is_array: bool = False
    extra_args: "Sequence[Any]" = field(default_factory=tuple)

    def __post_init__(self) -> None:
        self.operator = Operator.parse(self.operator)

    @classmethod
    def raw(cls, sql: str, *args: Any) -> "Condition":
        """Raw SQL with ``?`` markers bound, in order, to ``args``."""
        return cls(Operator.RAW, sql, extra_args=args)

    @classmethod
    def ref(cls, operator: "Union[Operator, str]", expression: str) -> "Condition":
        """Compare against another column or expression."""
        return cls(operator, expression, is_ref=True)

    @classmethod
    def subquery(cls, operator: "Union[Operator, str]", sql: str) -> "Condition":
        return cls(operator, sql, is_subquery=True)


Filter: "TypeAlias" = Mapping[str, Condition]


@dataclass
class MultiCondition:
    """Both filter shapes at once: an AND-group plus OR-ed AND-groups."""

    and_: "Optional[Filter]" = None
    or_: "Optional[Sequence[Filter]]" = None


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (Sequence, set, frozenset)) and not isinstance(value, (str, bytes, bytearray))


def _placeholder(args: "list[Any]", value: Any) -> str:
    args.append(value)
    return f"${len(args)}"


def _epoch_seconds(value: Any) -> int:
    return int(value) // 1000


def _compile_range(lhs: str, condition: Condition, args: "list[Any]") -> str:
    value = condition.value
    if not _is_sequence(value) or len(value) != 2:
        return ""
    lower, upper = list(value)
    negated = condition.operator is Operator.NOT_BETWEEN
    if condition.is_epoch_time:
        lower = None if lower is None else _epoch_seconds(lower)
        upper = None if upper is None else _epoch_seconds(upper)

    def render(bound: Any) -> str:
        placeholder = _placeholder(args, bound)
        return f"to_timestamp({placeholder})" if condition.is_epoch_time else placeholder

    if lower is not None and upper is not None:
        first = render(lower)
        return f"{lhs} {condition.operator} {first} AND {render(upper)}"
    if lower is not None:
        return f"{lhs} {Operator.LT if negated else Operator.GTE} {render(lower)}"
    if upper is not None:
        return f"{lhs} {Operator.GT if negated else Operator.LTE} {render(upper)}"
    return ""


def _compile_set(lhs: str, condition: Condition, args: "list[Any]") -> str:
    value = condition.value
    if not _is_sequence(value):
        msg = f"{condition.operator} condition on {lhs} requires a sequence value, got {type(value).__name__}"
        raise SQLBuilderError(msg)
    items = list(value)
    if not items:
        return "TRUE" if condition.operator is Operator.NOT_IN else "FALSE"
    if condition.operator is Operator.ANY:
        return f"{lhs} = ANY({_placeholder(args, items)})"
    placeholders = ", ".join(_placeholder(args, item) for item in items)
    return f"{lhs} {condition.operator} ({placeholders})"


def _compile_comparison(lhs: str, source: str, condition: Condition, args: "list[Any]") -> str:
    operator = condition.operator
    if operator in NULL_CHECKS:
        return f"{lhs} {operator}"
    if operator in RANGE_OPERATORS:
        return _compile_range(lhs, condition, args)
    if operator in SET_OPERATORS:
        return _compile_set(lhs, condition, args)
    if condition.is_ref:
        return f"{lhs} {operator} {condition.value}"
    if condition.source_is_value:
        left = _placeholder(args, source)
        return f"{left} {operator} {_placeholder(args, condition.value)}"
    return f"{lhs} {operator} {_placeholder(args, condition.value)}"


def _compile_json_array(column: str, condition: Condition, args: "list[Any]") -> str:
    clause = _compile_comparison(f"value ->> '{condition.key}'", column, condition, args)
    if not clause:
        return ""
    return f"EXISTS (SELECT FROM jsonb_array_elements({column}) WHERE {clause})"


def compile_condition(column: str, condition: Condition, args: "list[Any]") -> str:
    """Compile one condition into a fragment, appending its arguments.

    Args:
        column: Column reference or case key the condition applies to.
        condition: The condition.
        args: Running argument list; extended in place.

    Raises:
        SQLBuilderError: A set operator received a non-sequence value.

    Returns:
        The SQL fragment, or an empty string when the condition is skipped.
    """
    operator = Operator.parse(condition.operator)
    if condition.value is None and operator not in NULL_CHECKS:
        return ""
    if condition.is_array and condition.key:
        return _compile_json_array(column, condition, args)
    if condition.is_subquery:
        return " ".join(part for part in (column, str(operator), str(condition.value)) if part)
    if operator is Operator.RAW:
        if not isinstance(condition.value, str):
            return ""
        return splice_question_marks(condition.value, args, condition.extra_args)
    if operator in (Operator.EXISTS, Operator.NOT_EXISTS):
        return f"{operator} {condition.value}"
    return _compile_comparison(quote_column(column), column, condition, args)


def compile_and_group(args: "list[Any]", filters: "Optional[Filter]") -> "list[str]":
    """Compile an AND-group into fragments (skipped conditions produce nothing).

    ``args`` is extended only when every condition compiles.

    Args:
        args: Running argument list; extended in place.
        filters: Mapping of column to condition.

    Returns:
        The fragments, in mapping order.
    """
    scratch = list(args)
    fragments: list[str] = []
    for column, condition in (filters or {}).items():
        fragment = compile_condition(column, condition, scratch)
        if fragment:
            fragments.append(fragment)
    args.extend(scratch[len(args) :])
    return fragments


def compile_or_groups(args: "list[Any]", groups: "Sequence[Filter]") -> str:
    """Compile OR-ed AND-groups into one parenthesized fragment.

    Each group is compiled against the shared argument list, so numbering
    stays consecutive. Groups whose conditions were all skipped are dropped.
    Nothing is bound when any group fails to compile.

    Args:
        args: Running argument list; extended in place.
        groups: The AND-groups to OR together.

    Returns:
        ``((a AND b) OR (c))``, or an empty string when nothing survived.
    """
    scratch = list(args)
    rendered = []
    for group in groups:
        fragments = compile_and_group(scratch, group)
        if fragments:
            rendered.append(f"({' AND '.join(fragments)})")
    args.extend(scratch[len(args) :])
    if not rendered:
        return ""
    return f"({' OR '.join(rendered)})"

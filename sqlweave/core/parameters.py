"""Placeholder and identifier utilities.

Statements are assembled with PostgreSQL positional placeholders (``$1``,
``$2``, ...). The helpers here quote column references, renumber placeholders
when one statement is spliced into another, splice ``?`` markers of raw SQL
into numbered placeholders, and convert the final text to the ``%s`` style
psycopg expects. String literals and quoted identifiers are never rewritten.
"""

import re
from typing import TYPE_CHECKING, Any, Final

from sqlweave.exceptions import SQLBuilderError
from sqlweave.utils.text import unquote

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = (
    "numeric_to_pyformat",
    "placeholder_indexes",
    "quote_column",
    "shift_placeholders",
    "splice_question_marks",
)

_QUOTED: Final = r"""(?P<squote>'(?:[^']|'')*')|(?P<dquote>"(?:[^"]|"")*")"""
_NUMERIC_PLACEHOLDER_RE: Final = re.compile(_QUOTED + r"|\$(?P<index>\d+)")
_QMARK_RE: Final = re.compile(_QUOTED + r"|(?P<qmark>\?)")
_CAST_SEPARATOR: Final = "::"
_JSON_TEXT_SEPARATOR: Final = "->>"


def quote_column(column: str) -> str:
    """Quote a column reference part by part.

    ``users.name`` becomes ``"users"."name"``. A ``::cast`` or ``->>key``
    suffix is split off before quoting and re-appended afterwards. Anything
    containing ``(`` is treated as an expression and left alone.

    Args:
        column: Column reference, optionally table-qualified.

    Returns:
        The quoted reference.
    """
    suffix = ""
    if _CAST_SEPARATOR in column:
        parts = column.split(_CAST_SEPARATOR)
        column, suffix = parts[0], _CAST_SEPARATOR + parts[-1]
    elif _JSON_TEXT_SEPARATOR in column:
        parts = column.split(_JSON_TEXT_SEPARATOR)
        column, suffix = parts[0], _JSON_TEXT_SEPARATOR + parts[-1]

    if "(" in column:
        return column + suffix
    return ".".join(f'"{unquote(part)}"' for part in column.split(".")) + suffix


def placeholder_indexes(sql: str) -> "list[int]":
    """Return every ``$N`` index referenced outside literals, in order of appearance."""
    return [int(m.group("index")) for m in _NUMERIC_PLACEHOLDER_RE.finditer(sql) if m.group("index")]


def shift_placeholders(sql: str, offset: int) -> str:
    """Renumber every ``$N`` token by ``offset``.

    Used when a separately built statement is spliced into a parent whose
    argument list already holds ``offset`` values.

    Args:
        sql: Statement text.
        offset: Amount to add to each placeholder index.

    Returns:
        The renumbered text.
    """
    if offset == 0:
        return sql

    def _replace(match: "re.Match[str]") -> str:
        index = match.group("index")
        if index is None:
            return match.group(0)
        return f"${int(index) + offset}"

    return _NUMERIC_PLACEHOLDER_RE.sub(_replace, sql)


def splice_question_marks(sql: str, args: "list[Any]", extra_args: "Sequence[Any]") -> str:
    """Replace ``?`` markers with numbered placeholders, appending one argument per marker.

    Markers are consumed left to right, one per extra argument. Surplus
    markers are left untouched.

    Args:
        sql: Raw SQL containing ``?`` markers.
        args: Running argument list; extended in place.
        extra_args: Values bound to the markers, in order.

    Returns:
        The spliced text.
    """
    pending = list(extra_args)
    if not pending:
        return sql

    def _replace(match: "re.Match[str]") -> str:
        if match.group("qmark") is None or not pending:
            return match.group(0)
        args.append(pending.pop(0))
        return f"${len(args)}"

    return _QMARK_RE.sub(_replace, sql)


def numeric_to_pyformat(sql: str, args: "Sequence[Any]") -> "tuple[str, tuple[Any, ...]]":
    """Convert ``$N`` placeholders to psycopg's ``%s`` style.

    Arguments are reordered (and repeated) to match the order in which the
    placeholders occur, and literal ``%`` characters are doubled.

    Args:
        sql: Statement with ``$N`` placeholders.
        args: Positional arguments where ``args[N-1]`` binds ``$N``.

    Returns:
        Tuple of converted text and reordered arguments.
    """
    if not args:
        return sql, ()
    ordered: list[Any] = []

    def _replace(match: "re.Match[str]") -> str:
        text = match.group(0)
        index = match.group("index")
        if index is None:
            return text.replace("%", "%%")
        position = int(index)
        if not 1 <= position <= len(args):
            msg = f"placeholder ${position} has no bound argument ({len(args)} supplied)"
            raise SQLBuilderError(msg)
        ordered.append(args[position - 1])
        return "%s"

    pieces: list[str] = []
    last = 0
    for match in _NUMERIC_PLACEHOLDER_RE.finditer(sql):
        pieces.extend((sql[last : match.start()].replace("%", "%%"), _replace(match)))
        last = match.end()
    pieces.append(sql[last:].replace("%", "%%"))
    return "".join(pieces), tuple(ordered)

"""Pagination request and result types.

:class:`Pagination` is the request shape accepted by
``SelectBuilder.paginate``; :func:`format_pagination_result` turns the single
``(data, totalRecords)`` row of the fused pagination query into a
:class:`PaginationResult`.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Optional, Union

import msgspec
from typing_extensions import TypeVar

from sqlweave.core.scanner import scan_mapping
from sqlweave.utils.text import snake_case

if TYPE_CHECKING:
    from sqlweave.protocols import QueryResult

__all__ = (
    "ArrayAggConfig",
    "Pagination",
    "PaginationResult",
    "Sort",
    "format_pagination_result",
)

T = TypeVar("T", default=Any)


@dataclass
class Sort:
    """One sort rule: positive ``sort_order`` is ascending, negative descending."""

    sort_by: str
    sort_order: int = 1


@dataclass
class Pagination:
    """Page request.

    Pages are 1-based; non-positive pages mean the first page. ``sort_by``
    with a non-zero ``sort_order`` wins over ``multi_sort``, which wins over
    ``default_sort``.
    """

    page: int = 1
    limit: int = 0
    sort_by: str = ""
    sort_order: int = 0
    multi_sort: list[Sort] = field(default_factory=list)
    default_sort: list[Sort] = field(default_factory=list)

    @property
    def offset(self) -> int:
        return (max(self.page, 1) - 1) * self.limit

    @classmethod
    def from_request(cls, payload: "Mapping[str, Any]") -> "Pagination":
        """Build a request from camelCase (or snake_case) keys.

        Numeric strings such as query-string values are coerced.

        Raises:
            msgspec.ValidationError: A value cannot be coerced.
        """

        def _snake_keys(value: Any) -> Any:
            if isinstance(value, Mapping):
                return {snake_case(str(k)): _snake_keys(v) for k, v in value.items()}
            if isinstance(value, Sequence) and not isinstance(value, str):
                return [_snake_keys(item) for item in value]
            return value

        return msgspec.convert(_snake_keys(payload), cls, strict=False)


@dataclass
class ArrayAggConfig:
    """Settings for ``SelectBuilder.select_array_aggregation``."""

    expr: str
    sort_by: str = ""
    sort_order: int = 0


class PaginationResult(Generic[T]):
    """One page of rows plus the total number of matching rows."""

    __slots__ = ("data", "total_records")

    data: "list[T]"
    total_records: int

    def __init__(self, data: "list[T]", total_records: int) -> None:
        self.data = data
        self.total_records = total_records

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PaginationResult):
            return NotImplemented
        return self.data == other.data and self.total_records == other.total_records

    def __repr__(self) -> str:
        return f"PaginationResult(total_records={self.total_records}, data={self.data!r})"


def _row_values(result: "Any") -> "Optional[Sequence[Any]]":
    rows = getattr(result, "rows", result)
    if not rows:
        return None
    first = rows[0]
    if isinstance(first, Mapping):
        return (first.get("data"), first.get("totalRecords"))
    return first


def format_pagination_result(
    result: "Optional[Union[QueryResult, Sequence[Any]]]", record_type: "Optional[type[T]]" = None
) -> "PaginationResult[T]":
    """Convert the fused pagination row into a :class:`PaginationResult`.

    Args:
        result: The query result (or its rows) of a paginated SELECT.
        record_type: Record type each data item is scanned into; items stay
            mappings when omitted.

    Returns:
        The page. An empty result yields ``PaginationResult([], 0)``.
    """
    values = _row_values(result) if result is not None else None
    if not values:
        return PaginationResult([], 0)
    data, total = values[0], values[1]
    if isinstance(data, (str, bytes)):
        data = msgspec.json.decode(data)
    items = list(data or [])
    if record_type is not None:
        items = [scan_mapping(record_type, item) for item in items]
    return PaginationResult(items, int(total or 0))

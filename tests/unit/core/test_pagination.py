"""Unit tests for pagination types and result formatting."""

from dataclasses import dataclass

import msgspec
import pytest

from sqlweave.core.pagination import Pagination, PaginationResult, Sort, format_pagination_result
from sqlweave.protocols import QueryResult


@dataclass
class Row:
    id: int = 0
    name: str = ""


def test_offset_is_derived_from_page() -> None:
    assert Pagination(page=3, limit=25).offset == 50
    assert Pagination(page=0, limit=25).offset == 0
    assert Pagination(page=-2, limit=25).offset == 0


def test_from_request_accepts_camel_case_and_strings() -> None:
    pagination = Pagination.from_request(
        {"page": "2", "limit": "10", "sortBy": "name", "sortOrder": "-1", "multiSort": [{"sortBy": "id"}]}
    )

    assert pagination == Pagination(page=2, limit=10, sort_by="name", sort_order=-1, multi_sort=[Sort("id")])


def test_from_request_rejects_bad_values() -> None:
    with pytest.raises(msgspec.ValidationError):
        Pagination.from_request({"page": "first"})


def test_format_result_from_query_result() -> None:
    result = QueryResult(("data", "totalRecords"), [([{"id": 1, "name": "a"}, {"id": 2, "name": "b"}], 12)])

    assert format_pagination_result(result, Row) == PaginationResult([Row(1, "a"), Row(2, "b")], 12)


def test_format_result_keeps_mappings_without_record_type() -> None:
    page = format_pagination_result([('[{"id": 1}]', 1)])

    assert page.data == [{"id": 1}]
    assert page.total_records == 1


def test_format_result_from_mapping_row() -> None:
    page = format_pagination_result([{"data": None, "totalRecords": 0}])

    assert page == PaginationResult([], 0)


def test_format_empty_result() -> None:
    assert format_pagination_result(None) == PaginationResult([], 0)
    assert format_pagination_result(QueryResult(("data", "totalRecords"), [])) == PaginationResult([], 0)

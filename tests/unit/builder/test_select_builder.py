"""Unit tests for the SELECT builder."""

import re
from dataclasses import dataclass

import pytest

from sqlweave import sql
from sqlweave.builder import SelectBuilder
from sqlweave.core.filters import Condition
from sqlweave.core.metadata import column
from sqlweave.core.pagination import ArrayAggConfig
from sqlweave.exceptions import SQLBuilderError


@dataclass
class UserRow:
    id: int = 0
    full_name: str = ""
    email: str = column("u.email", default="")
    secret: str = column(json="-", default="")


def _placeholders(text: str) -> "list[int]":
    return [int(match) for match in re.findall(r"\$(\d+)", text)]


def test_select_with_where_condition() -> None:
    """Select columns from a table filtered by one equality condition."""
    query = sql.select("id", "name").from_("users").where({"status": Condition("=", "active")})

    assert query.build() == ('SELECT id,name FROM users WHERE "status" = $1', ["active"])


def test_select_without_columns_renders_star() -> None:
    """An empty projection selects every column."""
    assert SelectBuilder("users").build() == ("SELECT * FROM users", [])


def test_from_parses_inline_alias() -> None:
    """``from_("users u")`` keeps the alias for qualified filters."""
    text, args = sql.select("u.id").from_("users u").where({"u.active": Condition("=", True)}).build()

    assert text == 'SELECT u.id FROM users u WHERE "u"."active" = $1'
    assert args == [True]


def test_order_by_resolves_select_alias() -> None:
    """Sort keys naming a selected alias are rewritten to the expression."""
    query = (
        SelectBuilder("users u")
        .select("u.id", 'u.full_name AS "fullName"')
        .where({"u.status": Condition("=", "active")})
        .order_by(["fullName"])
        .limit(20)
    )

    assert query.build() == (
        'SELECT u.id,u.full_name AS "fullName" FROM users u WHERE "u"."status" = $1 '
        "ORDER BY u.full_name ASC NULLS FIRST LIMIT 20",
        ["active"],
    )


def test_order_by_descending_puts_nulls_last() -> None:
    text, _ = sql.select("id").from_("users").order_by(["created_at", "id"], asc=False).build()

    assert text == "SELECT id FROM users ORDER BY created_at, id DESC NULLS LAST"


def test_limit_and_offset() -> None:
    text, _ = sql.select("id").from_("users").limit(10).offset(20).build()

    assert text == "SELECT id FROM users LIMIT 10 OFFSET 20"


def test_limit_resets_offset() -> None:
    """Setting a limit after an offset drops the offset."""
    text, _ = sql.select("id").from_("users").offset(5).limit(10).build()

    assert text == "SELECT id FROM users LIMIT 10"


def test_select_replaces_column_with_same_alias() -> None:
    text, _ = sql.select('a AS "x"', "b").select('c AS "x"').from_("t").build()

    assert text == 'SELECT c AS "x",b FROM t'


def test_distinct_on_with_leading_alias() -> None:
    text, _ = SelectBuilder("users").select("name").distinct("id", "email").build()

    assert text == "SELECT DISTINCT ON (email) id,name FROM users"


def test_distinct_on_without_alias_prefixes_first_column() -> None:
    text, _ = SelectBuilder("users").select("name").distinct("", "email").build()

    assert text == "SELECT DISTINCT ON (email) name FROM users"


def test_group_by_and_having() -> None:
    query = (
        sql.select("status", 'COUNT(*) AS "total"')
        .from_("orders")
        .group_by("status")
        .having({"COUNT(*)": Condition(">", 5)})
    )

    assert query.build() == (
        'SELECT status,COUNT(*) AS "total" FROM orders GROUP BY status HAVING COUNT(*) > $1',
        [5],
    )


def test_having_without_group_by_fails() -> None:
    query = sql.select("status").from_("orders").having({"COUNT(*)": Condition(">", 5)})

    with pytest.raises(SQLBuilderError, match="only allowed together with a GROUP BY"):
        query.build()


def test_join_with_bound_conditions() -> None:
    """Extra join filters are AND-ed onto the ON clause with bound arguments."""
    query = (
        sql.select("u.id")
        .from_("users u")
        .join("orders o", "o.user_id = u.id", {"o.status": Condition("=", "paid")})
        .where({"u.active": Condition("=", True)})
    )

    assert query.build() == (
        'SELECT u.id FROM users u JOIN orders o ON o.user_id = u.id AND "o"."status" = $1 WHERE "u"."active" = $2',
        ["paid", True],
    )


def test_left_join() -> None:
    text, _ = sql.select("u.id").from_("users u").left_join("profiles p", "p.user_id = u.id").build()

    assert text == "SELECT u.id FROM users u LEFT JOIN profiles p ON p.user_id = u.id"


def test_where_or_groups() -> None:
    query = (
        sql.select("id")
        .from_("users")
        .where({"a": Condition("=", 1)})
        .where_or({"b": Condition("=", 2)}, {"c": Condition("=", 3)})
    )

    assert query.build() == ('SELECT id FROM users WHERE "a" = $1 AND (("b" = $2) OR ("c" = $3))', [1, 2, 3])


def test_search_over_plain_and_array_fields() -> None:
    text, args = sql.select("id").from_("users").search("jo", ["name", "tags:array"]).build()

    assert text == (
        "SELECT id FROM users WHERE (name ILIKE $1 OR EXISTS (SELECT 1 FROM unnest(tags) as val WHERE val ILIKE $2))"
    )
    assert args == ["%jo%", "%jo%"]


def test_search_with_empty_keyword_is_noop() -> None:
    assert sql.select("id").from_("users").search("", ["name"]).build() == ("SELECT id FROM users", [])


def test_with_cte_shifts_subquery_placeholders() -> None:
    """Arguments of a CTE are numbered after the ones bound before it."""
    recent = sql.select("user_id").from_("orders").where({"total": Condition(">", 100)})
    query = (
        sql.select("id")
        .from_("users")
        .where({"status": Condition("=", "active")})
        .with_cte("big", recent)
        .where({"id": Condition.subquery("IN", "(SELECT user_id FROM big)")})
    )

    text, args = query.build()

    assert text == (
        'WITH big AS (SELECT user_id FROM orders WHERE "total" > $2) '
        'SELECT id FROM users WHERE "status" = $1 AND id IN (SELECT user_id FROM big)'
    )
    assert args == ["active", 100]
    assert max(_placeholders(text)) == len(args)


def test_with_recursive_cte_from_raw_pair() -> None:
    text, _ = (
        sql.select("n")
        .from_("t")
        .with_recursive_cte("t(n)", ("SELECT 1 UNION ALL SELECT n + 1 FROM t WHERE n < 5", []))
        .build()
    )

    assert text == "WITH RECURSIVE t(n) AS (SELECT 1 UNION ALL SELECT n + 1 FROM t WHERE n < 5) SELECT n FROM t"


def test_union_all_with_order_and_limit() -> None:
    first = sql.select("id").from_("users").where({"x": Condition("=", 1)})
    second = sql.select("id").from_("admins").where({"y": Condition("=", 2)})

    query = SelectBuilder().union_all(first, second).order_by(["id"], asc=False).limit(5)

    assert query.build() == (
        'SELECT id FROM users WHERE "x" = $1 UNION ALL SELECT id FROM admins WHERE "y" = $2 '
        "ORDER BY id DESC NULLS LAST LIMIT 5",
        [1, 2],
    )


def test_left_join_lateral_numbers_arguments_in_call_order() -> None:
    """Clause order in the text does not change argument numbering."""
    sub = sql.select("o.total").from_("orders o").where({"o.kind": Condition("=", "x")})
    query = (
        sql.select("u.id")
        .from_("users u")
        .where({"u.a": Condition("=", 1)})
        .left_join_lateral("lo", sub, "TRUE")
    )

    assert query.build() == (
        'SELECT u.id FROM users u LEFT JOIN LATERAL (SELECT o.total FROM orders o WHERE "o"."kind" = $2) lo '
        'ON TRUE WHERE "u"."a" = $1',
        [1, "x"],
    )


def test_subquery_error_surfaces_on_outer_build() -> None:
    broken = SelectBuilder("t").having({"a": Condition("=", 1)})
    query = sql.select("id").from_("users").with_cte("x", broken)

    with pytest.raises(SQLBuilderError, match="GROUP BY"):
        query.build()


def test_first_recorded_error_wins() -> None:
    query = (
        sql.select("id")
        .from_("users")
        .where({"id": Condition("IN", 5)})
        .select_array_aggregation("tags", "", ArrayAggConfig(""))
    )

    with pytest.raises(SQLBuilderError, match="IN"):
        query.build()


def test_start_placeholder_from_pads_arguments() -> None:
    text, args = sql.select("id").from_("t").start_placeholder_from(3).where({"a": Condition("=", 1)}).build()

    assert text == 'SELECT id FROM t WHERE "a" = $3'
    assert args == [None, None, 1]


def test_select_bool_and_binds_arguments() -> None:
    builder = sql.select("u.id").from_("users u")
    query = builder.select_bool_and(f"o.paid = ${builder.current_arg_index() + 1}", "allPaid", True)

    assert query.build() == ('SELECT u.id,bool_and(o.paid = $1) AS "allPaid" FROM users u', [True])


def test_replacing_item_with_bound_arguments_fails() -> None:
    """Re-aliasing an item that bound arguments would orphan its placeholders."""
    query = (
        sql.select("id")
        .from_("t")
        .select_bool_and("x = $1", "flag", 5)
        .select_bool_and("x = $2", "flag", 6)
    )

    assert query.current_arg_index() == 1
    with pytest.raises(SQLBuilderError, match="already bound"):
        query.build()


def test_replacing_plain_item_with_bound_one() -> None:
    text, args = sql.select("id", 'TRUE AS "flag"').from_("t").select_bool_or("x = $1", "flag", 5).build()

    assert text == 'SELECT id,bool_or(x = $1) AS "flag" FROM t'
    assert args == [5]
    assert len(re.findall(r"\$\d+", text)) == len(args)


def test_clear_selects() -> None:
    text, _ = sql.select("id", "name").from_("t").clear_selects().select("email").build()

    assert text == "SELECT email FROM t"


def test_clear_selects_with_bound_arguments_fails() -> None:
    query = sql.select("id").from_("t").select_bool_and("x = $1", "flag", 5).clear_selects()

    with pytest.raises(SQLBuilderError, match="already bound"):
        query.build()


def test_select_case_when() -> None:
    query = sql.select("id").from_("orders").select_case_when("'big'", "'small'", "size", "total > $1", 100)

    text, args = query.build()

    assert text == "SELECT id,CASE WHEN total > $1 THEN 'big' ELSE 'small' END AS \"size\" FROM orders"
    assert args == [100]


def test_select_array_aggregation() -> None:
    query = sql.select("id").from_("posts").select_array_aggregation(
        "tagNames", "tags t", ArrayAggConfig("t.name", "t.name", 1)
    )

    assert query.build()[0] == (
        'SELECT id,(SELECT array_agg(t.name ORDER BY t.name ASC) FROM tags t) AS "tagNames" FROM posts'
    )


def test_select_array_aggregation_requires_expression() -> None:
    query = sql.select("id").from_("posts").select_array_aggregation("tagNames", "tags", ArrayAggConfig(""))

    with pytest.raises(SQLBuilderError, match="must not be empty"):
        query.build()


def test_for_record_uses_default_projection() -> None:
    text, _ = SelectBuilder.for_record(UserRow, "users u").build()

    assert text == 'SELECT id,"full_name" as "fullName",u.email as "email" FROM users u'


def test_count_builder() -> None:
    assert SelectBuilder.count("users").build() == ("SELECT COUNT(*) FROM users", [])


def test_build_is_repeatable() -> None:
    query = sql.select("id").from_("users").where({"id": Condition("IN", [1, 2])})

    assert query.build() == query.build()
    assert str(query) == 'SELECT id FROM users WHERE "id" IN ($1, $2)'


def test_add_args_for_handwritten_placeholders() -> None:
    builder = sql.select("id").from_("users").where({"a": Condition("=", 1)})
    builder.add_args("x")

    assert builder.current_arg_index() == 2
    assert builder.build()[1] == [1, "x"]


def test_failed_where_leaves_arguments_untouched() -> None:
    query = sql.select("id").from_("users").where({"a": Condition("=", 1), "b": Condition("IN", 2)})

    assert query.current_arg_index() == 0
    with pytest.raises(SQLBuilderError, match="IN"):
        query.build()

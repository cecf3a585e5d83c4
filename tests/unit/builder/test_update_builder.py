"""Unit tests for the UPDATE builder."""

from dataclasses import dataclass
from decimal import Decimal

import pytest

from sqlweave import sql
from sqlweave.builder import RawSQL, UpdateBuilder
from sqlweave.core.filters import Condition, MultiCondition
from sqlweave.core.metadata import column
from sqlweave.exceptions import SQLBuilderError


@dataclass
class UserPatch:
    name: str = ""
    email: str = column("users.email", default="")
    total: int = column(special="generated", default=0)
    hidden: str = column(json="-", default="")


@dataclass
class PriceRow:
    id: int = column(transform="bigint", default=0)
    price: Decimal = column(transform="numeric(10,2)", default=Decimal(0))


@dataclass
class Untyped:
    id: int = 0


def test_update_record_fields() -> None:
    """Payload arguments are numbered after the arguments bound while chaining."""
    query = UpdateBuilder("users").update(UserPatch(name="n", email="e")).where({"id": Condition("=", 1)})

    assert query.build() == (
        'UPDATE users SET "name" = $2, "email" = $3, "updated_at" = NOW() WHERE "id" = $1 RETURNING id',
        [1, "n", "e"],
    )


@pytest.mark.parametrize("exclude_first", [True, False])
def test_exclude_empty_in_either_order(exclude_first: bool) -> None:
    builder = UpdateBuilder("users")
    if exclude_first:
        builder.exclude_empty().update(UserPatch(name="n"))
    else:
        builder.update(UserPatch(name="n")).exclude_empty()

    text, args = builder.where({"id": Condition("=", 1)}).build()

    assert text == 'UPDATE users SET "name" = $2, "updated_at" = NOW() WHERE "id" = $1 RETURNING id'
    assert args == [1, "n"]


def test_update_mapping_with_raw_sql() -> None:
    query = (
        sql.update("products")
        .update({"stock": RawSQL("stock - ?", 3), "deleted_at": RawSQL("NOW()")})
        .where({"id": Condition("=", 9)})
    )

    assert query.build() == (
        'UPDATE products SET "stock" = stock - $2, "deleted_at" = NOW(), "updated_at" = NOW() '
        'WHERE "id" = $1 RETURNING id',
        [9, 3],
    )


def test_explicit_updated_at_is_not_duplicated() -> None:
    text, _ = (
        UpdateBuilder("users")
        .update({"updated_at": RawSQL("NOW() - interval '1 day'")})
        .where({"id": Condition("=", 1)})
        .build()
    )

    assert text.count("updated_at") == 1


def test_nested_mapping_is_flattened() -> None:
    text, args = (
        UpdateBuilder("users")
        .update({"name": "n", "profile": {"bio": "b"}})
        .where({"id": Condition("=", 1)})
        .build()
    )

    assert text == 'UPDATE users SET "name" = $2, "bio" = $3, "updated_at" = NOW() WHERE "id" = $1 RETURNING id'
    assert args == [1, "n", "b"]


def test_increment() -> None:
    query = UpdateBuilder("wallets").increment({"balance": 50}).where({"id": Condition("=", 1)})

    assert query.build() == (
        'UPDATE wallets SET "balance" = "balance" + $1, "updated_at" = NOW() WHERE "id" = $2 RETURNING id',
        [50, 1],
    )


def test_missing_where_is_rejected() -> None:
    with pytest.raises(SQLBuilderError, match="unsafe query: DELETE/UPDATE must have WHERE clause"):
        UpdateBuilder("users").update({"name": "n"}).build()


def test_nothing_to_update() -> None:
    with pytest.raises(SQLBuilderError, match="nothing to update"):
        UpdateBuilder("users").where({"id": Condition("=", 1)}).build()


def test_invalid_payload() -> None:
    with pytest.raises(SQLBuilderError, match="expected a record or a mapping"):
        UpdateBuilder("users").update(["name"]).where({"id": Condition("=", 1)}).build()


def test_add_case() -> None:
    query = (
        UpdateBuilder("orders")
        .add_case(
            "status",
            lambda case: case.when(MultiCondition(and_={"paid": Condition("=", True)}), "done").else_(
                "status", is_ref=True
            ),
        )
        .where({"id": Condition("IN", [1, 2])})
    )

    assert query.build() == (
        'UPDATE orders SET status = CASE WHEN "paid" = $1 THEN $2 ELSE status END, "updated_at" = NOW() '
        'WHERE "id" IN ($3, $4) RETURNING id',
        [True, "done", 1, 2],
    )


def test_add_case_with_or_groups() -> None:
    text, _ = (
        UpdateBuilder("orders")
        .add_case(
            "priority",
            lambda case: case.when(
                MultiCondition(or_=[{"vip": Condition("=", True)}, {"total": Condition(">", 100)}]), 1
            ).else_(0),
        )
        .where({"id": Condition("=", 5)})
        .build()
    )

    assert 'priority = CASE WHEN (("vip" = $1) OR ("total" > $2)) THEN $3 ELSE $4 END' in text


def test_add_case_twice_on_one_column_fails() -> None:
    builder = UpdateBuilder("orders").where({"id": Condition("=", 1)})
    builder.add_case("status", lambda case: case.else_("a"))
    builder.add_case("status", lambda case: case.else_("b"))

    with pytest.raises(SQLBuilderError, match="already defined"):
        builder.build()


def test_update_each() -> None:
    rows = [PriceRow(1, Decimal("9.50")), PriceRow(2, Decimal("3.00"))]
    query = UpdateBuilder("products").update_each(rows, "id").where({"active": Condition("=", True)})

    assert query.build() == (
        'UPDATE products SET "price" = v."price", "updated_at" = NOW() '
        'FROM (VALUES ($1::bigint, $2::numeric(10,2)), ($3::bigint, $4::numeric(10,2))) as v("id","price") '
        'WHERE products."id" = v."id" AND "active" = $5 RETURNING id',
        [1, Decimal("9.50"), 2, Decimal("3.00"), True],
    )


def test_update_each_requires_transform() -> None:
    with pytest.raises(SQLBuilderError, match="no transform type"):
        UpdateBuilder("t").update_each([Untyped(1)], "id").build()


def test_update_each_rejects_unsafe_transform() -> None:
    @dataclass
    class Unsafe:
        id: int = column(transform="int; DROP TABLE t", default=0)

    with pytest.raises(SQLBuilderError, match="invalid transform type"):
        UpdateBuilder("t").update_each([Unsafe(1)], "id").build()


def test_update_each_rejects_empty_rows() -> None:
    with pytest.raises(SQLBuilderError, match="non-empty list"):
        UpdateBuilder("t").update_each([], "id").build()


def test_update_from_and_join() -> None:
    text, args = (
        UpdateBuilder("orders", "o")
        .update({"status": "archived"})
        .from_("customers c")
        .where({"o.customer_id": Condition.ref("=", "c.id"), "c.closed": Condition("=", True)})
        .build()
    )

    assert text == (
        'UPDATE orders o SET "status" = $2, "updated_at" = NOW() FROM customers c '
        'WHERE "o"."customer_id" = c.id AND "c"."closed" = $1 RETURNING id'
    )
    assert args == [True, "archived"]


def test_update_with_cte_and_returning() -> None:
    stale = sql.select("id").from_("sessions").where({"expired": Condition("=", True)})
    text, args = (
        UpdateBuilder("users")
        .with_cte("stale", stale)
        .update({"online": False})
        .where({"id": Condition.subquery("IN", "(SELECT id FROM stale)")})
        .returning("id", "online")
        .build()
    )

    assert text == (
        'WITH stale AS (SELECT id FROM sessions WHERE "expired" = $1) '
        'UPDATE users SET "online" = $2, "updated_at" = NOW() WHERE id IN (SELECT id FROM stale) '
        "RETURNING id, online"
    )
    assert args == [True, False]

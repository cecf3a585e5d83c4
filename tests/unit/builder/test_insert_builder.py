"""Unit tests for the INSERT builder."""

from dataclasses import dataclass

import pytest

from sqlweave import sql
from sqlweave._sql import SQLFactory
from sqlweave.builder import InsertBuilder
from sqlweave.core.metadata import column
from sqlweave.exceptions import SQLBuilderError


class SequentialIds:
    def __init__(self, start: int) -> None:
        self.value = start - 1

    def next_id(self) -> int:
        self.value += 1
        return self.value


@dataclass
class NewUser:
    id: int = 0
    name: str = ""
    email: str = ""
    total: int = column(special="generated", default=0)
    secret: str = column(json="-", default="")


@dataclass
class Tag:
    label: str = ""


def test_insert_single_record_generates_id() -> None:
    query = InsertBuilder("users", id_generator=SequentialIds(100)).insert(NewUser(name="a", email="e"))

    assert query.build() == (
        'INSERT INTO users (id,"name","email",updated_at,created_at) VALUES ($1,$2,$3,NOW(),NOW()) RETURNING id',
        [100, "a", "e"],
    )


def test_insert_keeps_existing_id() -> None:
    _, args = InsertBuilder("users", id_generator=SequentialIds(100)).insert(NewUser(id=7, name="a")).build()

    assert args == [7, "a", ""]


def test_bulk_insert() -> None:
    rows = [NewUser(id=7, name="a", email="e"), NewUser(name="b", email="f")]

    text, args = InsertBuilder("users", id_generator=SequentialIds(100)).insert(rows).build()

    assert text == (
        'INSERT INTO users (id,"name","email",updated_at,created_at) '
        "VALUES ($1,$2,$3,NOW(),NOW()),($4,$5,$6,NOW(),NOW()) RETURNING id"
    )
    assert args == [7, "a", "e", 100, "b", "f"]


def test_ids_are_resolved_once() -> None:
    query = InsertBuilder("users", id_generator=SequentialIds(1)).insert(NewUser(name="a"))

    assert query.build() == query.build()


def test_exclude_empty_drops_zero_columns_for_single_row() -> None:
    query = InsertBuilder("users", id_generator=SequentialIds(5)).insert(NewUser(name="a")).exclude_empty()

    assert query.build() == (
        'INSERT INTO users (id,"name",updated_at,created_at) VALUES ($1,$2,NOW(),NOW()) RETURNING id',
        [5, "a"],
    )


def test_exclude_empty_is_ignored_for_bulk_rows() -> None:
    text, _ = (
        InsertBuilder("users", id_generator=SequentialIds(5))
        .insert([NewUser(name="a"), NewUser(name="b")])
        .exclude_empty()
        .build()
    )

    assert '"email"' in text


def test_returning_columns_and_conflict() -> None:
    text, _ = (
        InsertBuilder("users", id_generator=SequentialIds(1))
        .insert(NewUser(name="a", email="e"), "id", "name")
        .conflict("(email)", "NOTHING")
        .build()
    )

    assert text.endswith("VALUES ($1,$2,$3,NOW(),NOW()) ON CONFLICT (email) DO NOTHING RETURNING id, name")


def test_single_row_is_numbered_after_bound_arguments() -> None:
    query = (
        InsertBuilder("users", id_generator=SequentialIds(100))
        .add_args("merged")
        .insert(NewUser(name="a", email="e"))
        .conflict("(email)", "UPDATE SET note = $1")
    )

    assert query.build() == (
        'INSERT INTO users (id,"name","email",updated_at,created_at) VALUES ($2,$3,$4,NOW(),NOW()) '
        "ON CONFLICT (email) DO UPDATE SET note = $1 RETURNING id",
        ["merged", 100, "a", "e"],
    )


def test_bulk_rows_are_numbered_after_bound_arguments() -> None:
    text, args = (
        InsertBuilder("users", id_generator=SequentialIds(100))
        .add_args("merged")
        .insert([NewUser(name="a"), NewUser(name="b")])
        .conflict("(email)", "UPDATE SET note = $1")
        .build()
    )

    assert "VALUES ($2,$3,$4,NOW(),NOW()),($5,$6,$7,NOW(),NOW())" in text
    assert args == ["merged", 100, "a", "", 101, "b", ""]


def test_alias_is_rendered_with_as() -> None:
    text, _ = InsertBuilder("users", "u", id_generator=SequentialIds(1)).insert(NewUser(name="a")).build()

    assert text.startswith("INSERT INTO users AS u (")


def test_record_without_identifier_still_gets_id() -> None:
    assert InsertBuilder("tags", id_generator=SequentialIds(9)).insert(Tag("x")).build() == (
        'INSERT INTO tags (id,"label",updated_at,created_at) VALUES ($1,$2,NOW(),NOW()) RETURNING id',
        [9, "x"],
    )


def test_factory_passes_id_generator() -> None:
    factory = SQLFactory(id_generator=SequentialIds(40))

    assert factory.insert_into("users").insert(NewUser(name="a")).build()[1][0] == 40


def test_default_generator_is_used_when_none_given() -> None:
    _, args = sql.insert_into("users").insert(NewUser(name="a")).build()

    assert isinstance(args[0], int)
    assert args[0] > 0


@pytest.mark.parametrize(
    ("values", "message"),
    [
        ([], "empty list"),
        ({"name": "a"}, "must be a record"),
        ([NewUser(), Tag()], "share one type"),
    ],
)
def test_invalid_insert_values(values: object, message: str) -> None:
    with pytest.raises(SQLBuilderError, match=message):
        InsertBuilder("users").insert(values).build()


def test_insert_without_records_fails() -> None:
    with pytest.raises(SQLBuilderError, match="no records to insert"):
        InsertBuilder("users").build()

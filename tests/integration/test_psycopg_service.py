"""End-to-end tests for the relational service on a real PostgreSQL server.

Run with ``SQLWEAVE_INTEGRATION=1``; pytest-databases starts the server in
Docker.
"""

import os
from collections.abc import Generator
from dataclasses import dataclass
from typing import Optional

import pytest
from pytest_databases.docker.postgres import PostgresService

from sqlweave import sql
from sqlweave.adapters.psycopg import PsycopgConfig, PsycopgPoolConfig
from sqlweave.config import ServiceConfig
from sqlweave.core.filters import Condition
from sqlweave.core.pagination import Pagination
from sqlweave.exceptions import IntegrityError, NotFoundError
from sqlweave.service import RelationalService, ReturningConfig, use_transactions

pytestmark = [
    pytest.mark.integration,
    pytest.mark.postgres,
    pytest.mark.skipif(os.environ.get("SQLWEAVE_INTEGRATION") != "1", reason="SQLWEAVE_INTEGRATION is not set"),
]

CREATE_USERS = """
CREATE TABLE IF NOT EXISTS users (
    id bigint PRIMARY KEY,
    name text NOT NULL,
    email text NOT NULL,
    is_deleted boolean NOT NULL DEFAULT false,
    deleted_at timestamptz,
    updated_at timestamptz NOT NULL,
    created_at timestamptz NOT NULL
)
"""


class SequentialIds:
    def __init__(self) -> None:
        self.value = 0

    def next_id(self) -> int:
        self.value += 1
        return self.value


@dataclass
class User:
    id: int = 0
    name: str = ""
    email: str = ""


@dataclass
class UserState:
    id: int = 0
    name: str = ""
    is_deleted: bool = False


@pytest.fixture
def psycopg_config(postgres_service: PostgresService) -> "Generator[PsycopgConfig, None, None]":
    """Create a psycopg configuration for the test server.

    Args:
        postgres_service: PostgreSQL service fixture.

    Yields:
        The configuration; its pool is closed afterwards.
    """
    config = PsycopgConfig(
        pool_config=PsycopgPoolConfig(
            conninfo=f"postgres://{postgres_service.user}:{postgres_service.password}@{postgres_service.host}:{postgres_service.port}/{postgres_service.database}",
            min_size=1,
            max_size=4,
        )
    )
    yield config
    config.close_pool()


@pytest.fixture
def service(psycopg_config: PsycopgConfig) -> "Generator[RelationalService, None, None]":
    pool = psycopg_config.provide_pool()
    pool.exec(CREATE_USERS)
    pool.exec("TRUNCATE users")
    yield RelationalService(pool, config=ServiceConfig(id_generator=SequentialIds(), debug_level=2))
    pool.exec("DROP TABLE IF EXISTS users")


def _seed(service: RelationalService, count: int) -> None:
    service.insert_many_with_data("users", [User(name=f"user{i}", email=f"user{i}@example.com") for i in range(count)])


def test_insert_and_select_one(service: RelationalService) -> None:
    new_id = service.insert_one_with_data("users", User(name="ada", email="ada@example.com"))

    row = service.select_one(User, "SELECT id, name, email FROM users WHERE id = $1", new_id)

    assert row == User(id=new_id, name="ada", email="ada@example.com")


def test_insert_returning_record(service: RelationalService) -> None:
    row = service.insert_one_with_data(
        "users",
        User(name="bob", email="bob@example.com"),
        ReturningConfig(columns=("id", "name"), destination=UserState),
    )

    assert row.name == "bob"
    assert row.id > 0


def test_duplicate_id_is_integrity_error(service: RelationalService) -> None:
    service.insert_one_with_data("users", User(id=7, name="a", email="a@example.com"))

    with pytest.raises(IntegrityError):
        service.insert_one_with_data("users", User(id=7, name="b", email="b@example.com"))


def test_select_one_without_rows(service: RelationalService) -> None:
    with pytest.raises(NotFoundError):
        service.select_one(User, "SELECT id, name, email FROM users WHERE id = $1", 404)


def test_update_one_with_data(service: RelationalService) -> None:
    new_id = service.insert_one_with_data("users", User(name="old", email="old@example.com"))

    updated_id = service.update_one_with_data("users", {"id": Condition("=", new_id)}, {"name": "new"})

    assert updated_id == new_id
    assert service.count("SELECT COUNT(*) FROM users WHERE name = $1", "new") == 1


def test_update_many_into_list(service: RelationalService) -> None:
    _seed(service, 3)
    touched: "list[UserState]" = []

    count = service.update_many_with_data(
        "users",
        {"name": Condition("LIKE", "user%")},
        {"email": "same@example.com"},
        ReturningConfig(columns=("id", "name", "is_deleted"), destination=touched, record_type=UserState),
    )

    assert count == 3
    assert sorted(user.name for user in touched) == ["user0", "user1", "user2"]


def test_select_paginated(service: RelationalService) -> None:
    _seed(service, 5)
    query = (
        sql.select("u.id", 'u.name AS "name"', 'u.email AS "email"')
        .from_("users u")
        .where({"u.is_deleted": Condition("=", False)})
        .order_by(["name"])
        .paginate(Pagination(page=2, limit=2))
    )

    page = service.select_paginated(query, User)

    assert page.total_records == 5
    assert [user.name for user in page.data] == ["user2", "user3"]


def test_pages_partition_the_result_set(service: RelationalService) -> None:
    service.insert_many_with_data(
        "users", [User(name=f"member{i:02d}", email=f"m{i}@example.com") for i in range(25)]
    )
    all_ids = [user.id for user in service.select_many(User, "SELECT id, name, email FROM users ORDER BY name")]

    pages = []
    for number in (1, 2, 3):
        query = (
            sql.select("u.id", 'u.name AS "name"', 'u.email AS "email"')
            .from_("users u")
            .order_by(["name"])
            .paginate(Pagination(page=number, limit=10))
        )
        page = service.select_paginated(query, User)
        assert page.total_records == 25
        pages.append([user.id for user in page.data])

    assert [len(ids) for ids in pages] == [10, 10, 5]
    assert not set(pages[0]) & set(pages[1])
    assert not set(pages[1]) & set(pages[2])
    assert not set(pages[0]) & set(pages[2])
    assert pages[0] + pages[1] + pages[2] == all_ids


def test_select_paginated_empty(service: RelationalService) -> None:
    page = service.select_paginated(sql.select("u.id").from_("users u").paginate(Pagination(limit=2)), User)

    assert page.total_records == 0
    assert page.data == []


def test_soft_delete_and_delete(service: RelationalService) -> None:
    new_id = service.insert_one_with_data("users", User(name="gone", email="gone@example.com"))

    assert service.soft_delete_one("users", {"id": Condition("=", new_id)}) == new_id
    state = service.select_one(UserState, "SELECT id, name, is_deleted FROM users WHERE id = $1", new_id)
    assert state.is_deleted is True

    assert service.delete_many_with_filter("users", {"is_deleted": Condition("=", True)}) == 1
    assert service.count_with_filter("users", {}) == 0


def test_use_transactions_rolls_back(service: RelationalService) -> None:
    def work(tx: "object") -> None:
        RelationalService(service.pool, transaction=tx).insert_one_with_data(  # type: ignore[arg-type]
            "users", User(id=42, name="tx", email="tx@example.com")
        )
        msg = "no rows in result set"
        raise NotFoundError(msg)

    with pytest.raises(NotFoundError):
        use_transactions(service.pool, work)

    assert service.count_with_filter("users", {"id": Condition("=", 42)}) == 0


def test_use_transactions_commits(service: RelationalService) -> None:
    def work(tx: "object") -> Optional[int]:
        scoped = RelationalService(service.pool, transaction=tx)  # type: ignore[arg-type]
        return scoped.insert_one_with_data("users", User(id=43, name="tx", email="tx@example.com"))

    assert use_transactions(service.pool, work) == 43
    assert service.count_with_filter("users", {"id": Condition("=", 43)}) == 1


def test_insert_batch(service: RelationalService) -> None:
    written = service.insert_batch("users", [User(name=f"bulk{i}", email=f"b{i}@example.com") for i in range(10)])

    assert written == 10
    assert service.count_with_filter("users", {"name": Condition("LIKE", "bulk%")}) == 10

from __future__ import annotations

from collections.abc import Generator

import pytest

from sqlweave.core.cache import clear_all_caches
from sqlweave.utils.ids import set_default_generator

pytest_plugins = ["pytest_databases.docker.postgres"]


@pytest.fixture(autouse=True)
def reset_process_state() -> Generator[None, None, None]:
    """Start every test with empty metadata caches and the default id generator."""
    clear_all_caches()
    set_default_generator(None)
    yield
    clear_all_caches()
    set_default_generator(None)

import os
from pathlib import Path

import pytest
import pytest_asyncio

# Ensure we default to memory backend for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from daybook.db import SQLiteRepository  # noqa: E402
from daybook.repositories import InMemoryRepository, Repository  # noqa: E402
from daybook.service import TodoService  # noqa: E402


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def repo(request, tmp_path: Path) -> Repository:
    """
    Every service test runs once per backend: the in-memory repository and a
    real SQLite file under tmp_path.
    """
    if request.param == "sqlite":
        repository: Repository = SQLiteRepository(str(tmp_path / "daybook.db"))
    else:
        repository = InMemoryRepository()
    await repository.initialize()
    yield repository
    await repository.close()


@pytest.fixture()
def service(repo: Repository) -> TodoService:
    return TodoService(repo)
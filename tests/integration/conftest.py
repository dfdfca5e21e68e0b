from __future__ import annotations

import os
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from todo_api.api.main import create_app
from todo_api.config.settings import Settings
from todo_api.storage.postgres import PostgresTodoStorage


def _database_url() -> str:
    if os.getenv("RUN_POSTGRES_INTEGRATION_TESTS") != "1":
        pytest.skip(
            "Set RUN_POSTGRES_INTEGRATION_TESTS=1 and TODO_API_DATABASE_URL "
            "to run integration tests against PostgreSQL."
        )
    database_url = os.getenv("TODO_API_DATABASE_URL") or os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("TODO_API_DATABASE_URL is required for integration tests.")
    return database_url


@pytest.fixture
def pg_storage() -> Iterator[PostgresTodoStorage]:
    storage = PostgresTodoStorage.from_url(_database_url(), min_size=1, max_size=4)
    storage.migrate()
    with storage._pool.connection() as conn:
        conn.execute("TRUNCATE subtasks, tasks RESTART IDENTITY CASCADE")
    try:
        yield storage
    finally:
        storage.close()


@pytest.fixture
def pg_client(pg_storage: PostgresTodoStorage) -> Iterator[TestClient]:
    app = create_app(storage=pg_storage, settings_override=Settings(log_level="WARNING"))
    with TestClient(app) as test_client:
        yield test_client

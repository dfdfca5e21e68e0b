from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from todo_api.api.main import create_app
from todo_api.config.settings import Settings
from todo_api.storage.memory import InMemoryTodoStorage


@pytest.fixture
def storage() -> InMemoryTodoStorage:
    return InMemoryTodoStorage()


@pytest.fixture
def client(storage: InMemoryTodoStorage) -> Iterator[TestClient]:
    app = create_app(
        storage=storage,
        settings_override=Settings(app_name="todo-api-test", log_level="WARNING"),
    )
    with TestClient(app) as test_client:
        yield test_client

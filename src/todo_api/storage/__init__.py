"""Storage backends."""

from todo_api.storage.base import TodoStorage
from todo_api.storage.memory import InMemoryTodoStorage
from todo_api.storage.postgres import PostgresTodoStorage

__all__ = [
    "InMemoryTodoStorage",
    "PostgresTodoStorage",
    "TodoStorage",
]

"""Domain errors raised by the resolver and storage layers.

The API layer maps them onto HTTP responses:
- ValidationError -> 400
- NotFoundError -> 404
- StorageUnavailableError -> 503
"""

from __future__ import annotations


class TodoApiError(Exception):
    """Base class for errors the API knows how to surface."""


class ValidationError(TodoApiError):
    """A create/update payload failed a required-field or enum/range check."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFoundError(TodoApiError):
    """A referenced task or subtask does not exist."""

    def __init__(self, resource: str, identifier: int) -> None:
        super().__init__(f"{resource.capitalize()} {identifier} not found")
        self.resource = resource
        self.identifier = identifier


class StorageUnavailableError(TodoApiError):
    """The database could not be reached or failed for infrastructure reasons."""

"""Todo tracking REST API: tasks, subtasks, filtered listing, partial updates."""

__version__ = "0.1.0"

"""Read models for projects and the todos they contain."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Todo:
    """Work item embedded in a project."""

    id: int | None
    project_id: int | None
    title: str
    completed: bool = False
    due_date: datetime | None = None
    reminder_date: datetime | None = None
    assigned_to: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Project:
    """Project owned by a user, with its todos loaded."""

    id: int | None
    name: str
    owner_id: int
    color: str | None = None
    todos: list[Todo] = field(default_factory=list)

    def recipient_for(self, todo: Todo) -> int:
        """Return the user alerted about ``todo``: its assignee or the owner."""

        return todo.assigned_to or self.owner_id


__all__ = ["Project", "Todo"]

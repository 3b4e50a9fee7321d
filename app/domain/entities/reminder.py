"""Value objects produced by the reminder scans."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Literal


@dataclass
class DueTodoItem:
    """Todo listed in a daily summary."""

    project_id: int
    project_name: str
    todo_id: int
    title: str
    due_date: datetime | None
    status: Literal["overdue", "due_today"]
    days_past_due: int | None = None

    def to_metadata(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["due_date"] = self.due_date.isoformat() if self.due_date else None
        return payload


@dataclass
class StaleTodoItem:
    """Todo without dates that has not been touched for a while."""

    project_id: int
    project_name: str
    todo_id: int
    title: str
    days_since_update: int
    updated_at: datetime

    def to_metadata(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["updated_at"] = self.updated_at.isoformat()
        return payload


__all__ = ["DueTodoItem", "StaleTodoItem"]

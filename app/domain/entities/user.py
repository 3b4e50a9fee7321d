"""Domain entity representing a user."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """Read model of an application user as seen by the notification engine."""

    id: int | None
    name: str
    email: str
    plan_tier: str
    created_at: datetime | None = None


__all__ = ["User"]

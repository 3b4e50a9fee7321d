"""Repository implementations for infrastructure layer."""

from .user_repository import UserRepository
from .project_repository import ProjectRepository
from .notification_repository import NotificationRepository

__all__ = [
    "UserRepository",
    "ProjectRepository",
    "NotificationRepository",
]

"""ORM models used by the application infrastructure."""

from .user import UserModel
from .project import ProjectModel, TodoModel
from .notification import NotificationModel

__all__ = [
    "UserModel",
    "ProjectModel",
    "TodoModel",
    "NotificationModel",
]

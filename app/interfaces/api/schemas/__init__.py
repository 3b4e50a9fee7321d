from .notification import (
    DeletedCountRead,
    ModifiedCountRead,
    NotificationPageRead,
    NotificationRead,
    RelatedProjectRead,
    RelatedUserRead,
    ReminderTriggerRead,
)

__all__ = [
    "DeletedCountRead",
    "ModifiedCountRead",
    "NotificationPageRead",
    "NotificationRead",
    "RelatedProjectRead",
    "RelatedUserRead",
    "ReminderTriggerRead",
]

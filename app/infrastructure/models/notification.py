"""SQLAlchemy model for persisted notifications."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.infrastructure.database import Base
from app.utils import utc_now_naive


class NotificationModel(Base):
    """Database representation for user notifications."""

    __tablename__ = "notification"
    __table_args__ = (
        Index("ix_notification_user_created", "user_id", "created_at"),
        Index("ix_notification_user_read", "user_id", "is_read"),
        Index("ix_notification_user_type_subject", "user_id", "type", "subject_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    action_url = Column(String(255), nullable=True)

    related_project_id = Column(
        Integer, ForeignKey("project.id", ondelete="SET NULL"), nullable=True
    )
    related_invitation_id = Column(Integer, nullable=True, index=True)
    related_user_id = Column(Integer, ForeignKey("user.id"), nullable=True)
    related_todo_id = Column(Integer, nullable=True)
    related_comment_id = Column(Integer, nullable=True)

    extra = Column("metadata", JSON, nullable=False, default=dict)

    plan_tier = Column(String(20), nullable=False, default="free", index=True)
    importance = Column(String(20), nullable=False, default="standard", index=True)
    expires_at = Column(DateTime(), nullable=True, index=True)

    subject_key = Column(String(80), nullable=True)
    subject_hash = Column(String(64), nullable=True, unique=True)

    created_at = Column(DateTime(), nullable=False, default=utc_now_naive)
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=utc_now_naive,
        onupdate=utc_now_naive,
    )

    related_project = relationship("ProjectModel", lazy="joined")
    related_user = relationship(
        "UserModel", lazy="joined", foreign_keys=[related_user_id]
    )


__all__ = ["NotificationModel"]

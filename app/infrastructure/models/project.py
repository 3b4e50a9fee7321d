"""SQLAlchemy models for projects and their todos."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.infrastructure.database import Base
from app.utils import utc_now_naive


class ProjectModel(Base):
    """Database representation of a project."""

    __tablename__ = "project"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    color = Column(String(20), nullable=True)
    owner_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)

    todos = relationship(
        "TodoModel",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="TodoModel.id",
    )


class TodoModel(Base):
    """Database representation of a todo inside a project."""

    __tablename__ = "todo"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(
        Integer, ForeignKey("project.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(Text, nullable=False)
    completed = Column(Boolean, nullable=False, default=False, index=True)
    due_date = Column(DateTime(), nullable=True, index=True)
    reminder_date = Column(DateTime(), nullable=True, index=True)
    assigned_to = Column(Integer, ForeignKey("user.id"), nullable=True, index=True)
    created_at = Column(DateTime(), nullable=False, default=utc_now_naive)
    updated_at = Column(
        DateTime(),
        nullable=True,
        default=utc_now_naive,
        onupdate=utc_now_naive,
    )

    project = relationship("ProjectModel", back_populates="todos")


__all__ = ["ProjectModel", "TodoModel"]

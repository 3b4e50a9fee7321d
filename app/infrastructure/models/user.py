"""SQLAlchemy model for the user table."""

from sqlalchemy import Column, DateTime, Integer, String, func

from app.infrastructure.database import Base


class UserModel(Base):
    """Database representation of the system user (plan tier included)."""

    __tablename__ = "user"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(120), nullable=False, index=True)
    plan_tier = Column(String(20), nullable=False, default="free")
    created_at = Column(DateTime, nullable=False, server_default=func.now())

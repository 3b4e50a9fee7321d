"""Persistence layer for user data."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from app.domain.entities import User
from app.infrastructure.models import UserModel
from app.utils import from_storage_datetime


class UserRepository:
    """Read access to users and their subscription plan."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list(self, skip: int = 0, limit: int | None = None) -> Sequence[User]:
        query = self.session.query(UserModel).order_by(UserModel.id)
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def list_ids(self) -> list[int]:
        return [row[0] for row in self.session.query(UserModel.id).order_by(UserModel.id)]

    def get(self, user_id: int) -> User | None:
        model = self.session.get(UserModel, user_id)
        return self._to_entity(model) if model else None

    def get_plan_tier(self, user_id: int) -> str | None:
        row = (
            self.session.query(UserModel.plan_tier)
            .filter(UserModel.id == user_id)
            .first()
        )
        return row[0] if row else None

    def create(self, user: User) -> User:
        model = UserModel(name=user.name, email=user.email, plan_tier=user.plan_tier)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def set_plan_tier(self, user_id: int, plan_tier: str) -> User | None:
        model = self.session.get(UserModel, user_id)
        if model is None:
            return None
        model.plan_tier = plan_tier
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    @staticmethod
    def _to_entity(model: UserModel) -> User:
        return User(
            id=model.id,
            name=model.name,
            email=model.email,
            plan_tier=model.plan_tier,
            created_at=from_storage_datetime(model.created_at),
        )


__all__ = ["UserRepository"]

"""Plan tier resolution with a short-lived in-process cache."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError

from app.domain.retention import DEFAULT_PLAN_TIER, normalize_plan_tier
from app.infrastructure.repositories import ProjectRepository, UserRepository

logger = logging.getLogger(__name__)


class PlanTierCache:
    """Remember resolved plan tiers for ``ttl_seconds``."""

    def __init__(
        self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[int, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def get(self, user_id: int) -> str | None:
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return None
            tier, stored_at = entry
            if self._clock() - stored_at >= self._ttl:
                self._entries.pop(user_id, None)
                return None
            return tier

    def set(self, user_id: int, tier: str) -> None:
        with self._lock:
            self._entries[user_id] = (tier, self._clock())

    def clear(self, user_id: int | None = None) -> None:
        """Forget ``user_id`` (or everything), e.g. after a plan change."""

        with self._lock:
            if user_id is None:
                self._entries.clear()
            else:
                self._entries.pop(user_id, None)


class PlanTierLookup:
    """Resolve the subscription tier of users and project owners."""

    def __init__(
        self,
        users: UserRepository,
        projects: ProjectRepository | None = None,
        cache: PlanTierCache | None = None,
    ) -> None:
        self._users = users
        self._projects = projects
        self._cache = cache

    @property
    def cache(self) -> PlanTierCache | None:
        return self._cache

    def get_plan_tier(self, user_id: int) -> str:
        """Return the tier of ``user_id``; unknown users fall back to ``free``."""

        if self._cache is not None:
            cached = self._cache.get(user_id)
            if cached is not None:
                return cached
        try:
            raw_tier = self._users.get_plan_tier(user_id)
        except SQLAlchemyError:
            logger.warning(
                "Could not load plan tier for user %s; using %s",
                user_id,
                DEFAULT_PLAN_TIER,
                exc_info=True,
            )
            return DEFAULT_PLAN_TIER
        tier = normalize_plan_tier(raw_tier)
        if self._cache is not None:
            self._cache.set(user_id, tier)
        return tier

    def get_project_owner_plan_tier(self, project_id: int) -> str:
        if self._projects is None:
            return DEFAULT_PLAN_TIER
        try:
            owner_id = self._projects.get_owner_id(project_id)
        except SQLAlchemyError:
            logger.warning(
                "Could not load owner of project %s", project_id, exc_info=True
            )
            return DEFAULT_PLAN_TIER
        if owner_id is None:
            return DEFAULT_PLAN_TIER
        return self.get_plan_tier(owner_id)


__all__ = ["PlanTierCache", "PlanTierLookup"]

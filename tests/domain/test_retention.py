"""Tests for plan-tier aware retention rules."""

from datetime import datetime, timedelta, timezone

import pytest

from app.domain.entities import Importance, NotificationType
from app.domain.retention import (
    ENTITY_NOTIFICATION,
    PLAN_TIERS,
    RetentionPolicy,
    default_retention_policy,
    normalize_plan_tier,
)

ANCHOR = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("notification_type", "expected"),
    [
        (NotificationType.PROJECT_INVITATION, Importance.CRITICAL),
        (NotificationType.ADMIN_MESSAGE, Importance.CRITICAL),
        (NotificationType.TODO_ASSIGNED, Importance.STANDARD),
        (NotificationType.TODO_OVERDUE, Importance.TRANSIENT),
        (NotificationType.DAILY_TODO_SUMMARY, Importance.TRANSIENT),
        (NotificationType.USER_POST, Importance.STANDARD),
        ("new_follower", Importance.TRANSIENT),
    ],
)
def test_classify(notification_type, expected):
    assert default_retention_policy.classify(notification_type) is expected


def test_classify_rejects_unknown_type():
    with pytest.raises(ValueError):
        default_retention_policy.classify("carrier_pigeon")


@pytest.mark.parametrize(
    ("plan_tier", "importance", "days"),
    [
        ("free", Importance.CRITICAL, 30),
        ("free", Importance.TRANSIENT, 7),
        ("pro", Importance.STANDARD, 90),
        ("premium", Importance.TRANSIENT, 90),
        ("enterprise", Importance.CRITICAL, 365),
    ],
)
def test_notification_expiration(plan_tier, importance, days):
    expires = default_retention_policy.expiration(plan_tier, importance, ANCHOR)

    assert expires == ANCHOR + timedelta(days=days)


def test_expiration_is_deterministic():
    first = default_retention_policy.expiration("pro", NotificationType.TODO_OVERDUE, ANCHOR)
    second = default_retention_policy.expiration("pro", "todo_overdue", ANCHOR)

    assert first == second == ANCHOR + timedelta(days=30)


@pytest.mark.parametrize("importance", list(Importance))
def test_higher_tiers_never_keep_notifications_shorter(importance):
    days = [
        default_retention_policy.retention_days(ENTITY_NOTIFICATION, tier, importance.value)
        for tier in PLAN_TIERS
    ]

    assert days == sorted(days)


def test_unknown_plan_tier_falls_back_to_free():
    assert normalize_plan_tier("Platinum") == "free"
    assert normalize_plan_tier(None) == "free"
    assert normalize_plan_tier(" PRO ") == "pro"
    assert default_retention_policy.expiration(
        "platinum", Importance.STANDARD, ANCHOR
    ) == ANCHOR + timedelta(days=30)


def test_accepted_invitations_are_kept_forever_on_premium():
    assert default_retention_policy.invitation_expiration("premium", "accepted", ANCHOR) is None
    assert default_retention_policy.invitation_expiration(
        "free", "accepted", ANCHOR
    ) == ANCHOR + timedelta(days=30)


def test_cancelled_invitations_follow_expired_rule():
    cancelled = default_retention_policy.invitation_expiration("pro", "cancelled", ANCHOR)
    expired = default_retention_policy.invitation_expiration("pro", "expired", ANCHOR)

    assert cancelled == expired == ANCHOR + timedelta(days=30)


def test_activity_log_and_team_member_expiration():
    assert default_retention_policy.activity_log_expiration(
        "pro", ANCHOR
    ) == ANCHOR + timedelta(days=180)
    assert default_retention_policy.team_member_expiration(
        "premium", ANCHOR
    ) == ANCHOR + timedelta(days=1095)


def test_unknown_entity_or_category_is_rejected():
    with pytest.raises(ValueError):
        default_retention_policy.retention_days("attachment", "free", "standard")
    with pytest.raises(ValueError):
        default_retention_policy.retention_days(ENTITY_NOTIFICATION, "free", "urgent")


def test_custom_table_overrides_defaults():
    policy = RetentionPolicy(
        table={ENTITY_NOTIFICATION: {tier: {"standard": 1} for tier in PLAN_TIERS}}
    )

    assert policy.expiration("pro", Importance.STANDARD, ANCHOR) == ANCHOR + timedelta(days=1)

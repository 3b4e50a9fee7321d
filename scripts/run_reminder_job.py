"""Run one reminder job once, outside the API process (e.g. from cron)."""

from __future__ import annotations

import argparse
import logging

from app.application.plan_tiers import PlanTierCache
from app.application.use_cases.notifications import (
    JOB_DAILY_SUMMARY,
    JOB_DUE_TODOS,
    JOB_PURGE_EXPIRED,
    JOB_REMINDERS,
    JOB_STALE_ITEMS,
    ReminderScheduler,
    build_notification_service,
)
from app.config import get_settings
from app.infrastructure.database import SessionLocal, initialize_database

ALL_JOBS = "all"
JOB_CHOICES = [
    JOB_DUE_TODOS,
    JOB_REMINDERS,
    JOB_DAILY_SUMMARY,
    JOB_STALE_ITEMS,
    JOB_PURGE_EXPIRED,
    ALL_JOBS,
]


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for the reminder job runner."""

    parser = argparse.ArgumentParser(
        description="Run a reminder or notification housekeeping job once.",
    )
    parser.add_argument(
        "--job",
        choices=JOB_CHOICES,
        default=ALL_JOBS,
        help="Job to run (default: all)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level",
    )
    return parser.parse_args()


def main() -> None:
    """Run the requested job(s) and print how many notifications they touched."""

    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    settings = get_settings()
    initialize_database()

    # No websocket listeners live in this process, so nothing is published.
    cache = PlanTierCache(ttl_seconds=settings.plan_tier_cache_seconds)
    reminders = ReminderScheduler(
        SessionLocal,
        lambda session: build_notification_service(
            session, plan_tier_cache=cache, settings=settings
        ),
        dedup_window_minutes=settings.notification_dedup_window_minutes,
    )

    names = list(reminders.jobs) if args.job == ALL_JOBS else [args.job]
    for name in names:
        count = reminders.run_job(name)
        print(f"{name}: {count}")


if __name__ == "__main__":
    main()

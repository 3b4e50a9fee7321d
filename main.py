import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from app.application.plan_tiers import PlanTierCache
from app.application.use_cases.notifications import (
    ReminderScheduler,
    build_notification_service,
)
from app.config import Settings, get_settings
from app.infrastructure import database
from app.infrastructure.notifications import (
    NotificationConnectionManager,
    WebsocketEventPublisher,
)
from app.infrastructure.scheduler import ReminderJobRunner
from app.interfaces.api.routes import register_routes


def create_app(settings: Settings | None = None, engine: Engine | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``engine`` defaults to the engine built from ``DATABASE_URL``; passing one
    binds every request session, websocket and scheduler tick to it.
    """

    settings = settings or get_settings()
    bind = engine or database.engine
    session_factory = (
        database.SessionLocal if engine is None else database.build_session_factory(engine)
    )
    publisher = WebsocketEventPublisher(NotificationConnectionManager())
    plan_tier_cache = PlanTierCache(ttl_seconds=settings.plan_tier_cache_seconds)
    reminders = ReminderScheduler(
        session_factory,
        lambda session: build_notification_service(
            session,
            publisher=publisher,
            plan_tier_cache=plan_tier_cache,
            settings=settings,
        ),
        dedup_window_minutes=settings.notification_dedup_window_minutes,
    )
    runner = ReminderJobRunner(reminders, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables, bind realtime delivery and start the timers."""

        database.initialize_database(bind)
        publisher.bind_loop(asyncio.get_running_loop())
        runner.start()
        try:
            yield
        finally:
            runner.shutdown()
            publisher.bind_loop(None)
            if engine is None:
                bind.dispose()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.publisher = publisher
    app.state.plan_tier_cache = plan_tier_cache
    app.state.reminders = reminders
    app.state.scheduler = runner

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()

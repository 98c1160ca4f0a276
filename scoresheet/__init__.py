import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from .config import Settings, settings as default_settings
from .db import build_engine, init_db
from .error_handlers import add_error_handlers
from .services.sessions import SessionStore, UserSessionPointer, run_sweeper
from .utils import KeyedLocks, configure_logging

log = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)
    engine = engine or build_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(app.state.engine)
        sweeper = asyncio.create_task(
            run_sweeper(app.state.sessions, settings.SESSION_SWEEP_INTERVAL_SECONDS)
        )
        log.info("%s started", settings.APP_TITLE)
        try:
            yield
        finally:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper

    app = FastAPI(title=settings.APP_TITLE, version=settings.APP_VERSION, lifespan=lifespan)

    app.state.settings = settings
    app.state.engine = engine
    app.state.sessions = SessionStore(
        ttl=timedelta(seconds=settings.SESSION_TTL_SECONDS),
        remember_me_ttl=timedelta(seconds=settings.REMEMBER_ME_TTL_SECONDS),
        pointer_writer=UserSessionPointer(engine),
    )
    app.state.group_locks = KeyedLocks()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    add_error_handlers(app)

    # Routers
    from .routers import auth, grading_criteria, groups, learners, protected, score_columns, subjects, users

    for module in (auth, protected, users, subjects, grading_criteria, groups, score_columns, learners):
        app.include_router(module.router, prefix="/api")

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app

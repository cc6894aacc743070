# seasonhub/app/main.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from seasonhub.core.config import settings
from seasonhub.core.database import wait_for_db
from seasonhub.core.rate_limit import init_rate_limiter
from seasonhub.core.exceptions import SeasonHubError
from seasonhub.app.exception_handlers import seasonhub_exception_handler, general_exception_handler
from seasonhub.app.routers import auth, context, seasons, me
from seasonhub.create_admin import create_admin_user
from seasonhub.create_roles import init_roles
from seasonhub.create_tables import init_db
from seasonhub.worker.season_manager import build_scheduler

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = build_scheduler()
    try:
        # fastapi-limiter (Redis)
        await init_rate_limiter()
        # 1. Wait for the database
        await wait_for_db()

        # 2. Season auto-close job
        if settings.ENVIRONMENT != "test":
            scheduler.start()
            logger.info("[lifespan] Scheduler started for season maintenance")

        # 3. Dev seed: tables, role catalog, platform admin
        if settings.DEBUG:
            try:
                await init_db()
                await init_roles()
                await create_admin_user()
                logger.info("[lifespan] Dev seed completed (roles, admin)")
            except Exception as se:
                logger.warning(f"[lifespan] Dev seed failed: {se}")

    except Exception as e:
        logger.error(f"[lifespan] Startup failure: {e}", exc_info=True)

    yield

    if scheduler.running:
        scheduler.shutdown()
    logger.info("[lifespan] Shutdown complete")

tags_metadata = [
    {"name": "auth", "description": "Authentication and season login"},
    {"name": "context", "description": "Selected school / season of the session"},
    {"name": "seasons", "description": "Seasons, season roles and snapshots"},
    {"name": "me", "description": "Current user"},
]

app = FastAPI(
    title="SeasonHub API",
    description="Season context, permissions and snapshots for multi-school platforms",
    version="0.1.0",
    lifespan=lifespan,
    openapi_tags=tags_metadata
)

# Prometheus Metrics (Expose /metrics)
Instrumentator().instrument(app).expose(app)

if settings.DEBUG:
    # Local development: any localhost port (credentials forbid "*")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:[0-9]+)?",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_exception_handler(SeasonHubError, seasonhub_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

@app.get("/")
def read_root():
    return {
        "status": "active",
        "env": settings.ENVIRONMENT,
    }

app.include_router(auth.router, prefix="/api/v1/auth")
app.include_router(context.router, prefix="/api/v1")
app.include_router(seasons.router, prefix="/api/v1")
app.include_router(me.router, prefix="/api/v1")

"""LabelFlow API application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.core.logging import setup_logging
from app.database import init_db, close_db, engine
from app.middleware.metrics import setup_metrics
from app.api.v1 import auth, data_sources, tasks, workflows

setup_logging()
logger = logging.getLogger(__name__)

API_ROUTERS = (
    (auth.router, "/auth", "auth"),
    (workflows.router, "", "workflows"),
    (data_sources.router, "/projects", "data-sources"),
    (tasks.router, "", "tasks"),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield
    await close_db()
    logger.info("%s stopped", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Workflow stages and task lifecycle for data labeling projects",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_metrics(app)

for router, prefix, tag in API_ROUTERS:
    app.include_router(router, prefix=f"{settings.API_V1_PREFIX}{prefix}", tags=[tag])


@app.get("/health")
async def health_check():
    """Liveness plus a database round trip."""
    checks = {"database": "ok"}
    try:
        async with engine.connect() as conn:
            await conn.execute(select(1))
    except SQLAlchemyError as exc:
        logger.warning("Health check could not reach the database: %s", exc)
        checks["database"] = f"error: {exc}"

    return {
        "status": "ok" if checks["database"] == "ok" else "degraded",
        "version": settings.APP_VERSION,
        "checks": checks,
    }

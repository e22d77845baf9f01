"""
FastAPI application for the EcoQuest engine.

Routers stay thin: each maps one engine operation onto HTTP, and AppError
subclasses become 4xx/5xx payloads through the shared exception handlers.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from ecoquest.api import badges, health, jobs, leaderboard, submissions, tasks
from ecoquest.core.config import settings, validate_config
from ecoquest.core.database import create_all_tables
from ecoquest.core.errors import AppError, app_error_handler, http_error_handler, unhandled_exception_handler
from ecoquest.core.logging import configure_logging
from ecoquest.core.middleware.request_id import RequestIdMiddleware
from ecoquest.features.badges.service import seed_default_badges
from ecoquest.features.services import get_services

configure_logging(settings.ENV)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("ecoquest")
    logger.info("Starting EcoQuest engine...")
    create_all_tables()
    seed_default_badges(get_services().store)
    try:
        yield
    finally:
        logger.info("Stopping EcoQuest engine...")


app = FastAPI(title="EcoQuest engine", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(tasks.router, tags=["tasks"])
app.include_router(leaderboard.router, tags=["leaderboard"])
app.include_router(badges.router, tags=["badges"])
app.include_router(submissions.router, tags=["submissions"])
app.include_router(jobs.router, tags=["jobs"])
app.include_router(health.root_router, tags=["health"])

"""
HR Sync Engine - Main Application Entry Point

Connects companies to their HR systems and keeps the local directory in
sync through scheduled pulls and vendor webhooks.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.config import get_settings
from backend.db.session import engine
from backend.dependencies import close_adapter_cache
from backend.routers.v1 import hr_integrations, webhooks
from backend.services import cache

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

# Initialize Sentry for error monitoring
if settings.sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"hr-sync-engine@{settings.app_version}",
        traces_sample_rate=0.1 if settings.environment == "production" else 1.0,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
        ],
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    yield
    await close_adapter_cache()
    await cache.close()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description=(
        "Connects companies to BambooHR, ServiceNow HR, Sage HR and Zoho People "
        "and synchronizes employees, departments and job positions."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    openapi_url="/api/openapi.json" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "hr-sync-api"}


# API v1 routes
app.include_router(
    hr_integrations.router,
    prefix=settings.api_v1_prefix,
    tags=["HR Integrations"],
)
app.include_router(
    webhooks.router,
    prefix=settings.api_v1_prefix,
    tags=["HR Webhooks"],
)

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockroom.api.auth import router as auth_router
from stockroom.api.health import router as health_router
from stockroom.api.invitations import router as invitations_router
from stockroom.api.items import router as items_router
from stockroom.api.metrics_endpoint import router as metrics_router
from stockroom.api.organizations import current_router as current_org_router
from stockroom.api.organizations import router as organizations_router
from stockroom.core.config import SETTINGS
from stockroom.core.errors import StockroomError
from stockroom.core.logging import setup_logging
from stockroom.db.engine import lifespan_db
from stockroom.db.redis import lifespan_redis
from stockroom.middleware.metrics import MetricsMiddleware
from stockroom.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order even if one side fails
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="stockroom",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(SETTINGS.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(StockroomError)
async def stockroom_error_handler(_request: Request, exc: StockroomError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_message},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error  %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(organizations_router)
app.include_router(current_org_router)
app.include_router(invitations_router)
app.include_router(items_router)

logger.info(
    "stockroom started  env=%s log_level=%s port=%d docs=%s store=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
    "postgres" if SETTINGS.database_url else "memory",
)

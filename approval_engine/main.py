from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from approval_engine.api.deps import notification_dispatcher, redis_client
from approval_engine.api.v1.router import router as api_v1_router
from approval_engine.config.settings import settings
from approval_engine.core.exceptions import BaseAppException
from approval_engine.core.logging import get_logger, setup_logging
from approval_engine.core.middleware import get_request_id, register_middlewares
from approval_engine.db.init_db import init_db

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.is_production():
        # Dev/demo only; production schemas are migrated separately
        await init_db()
    yield
    await notification_dispatcher.drain()
    await redis_client.aclose()


def create_app() -> FastAPI:
    """
    Application factory for the FastAPI app.

    - Configures title, version, debug mode from Settings.
    - Registers CORS, core middleware, and exception handlers.
    - Includes the versioned API router under /api/v1.
    """
    setup_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        version=settings.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ORIGINS != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middlewares(app)

    @app.exception_handler(BaseAppException)
    async def app_exception_handler(request: Request, exc: BaseAppException) -> JSONResponse:
        logger.warning(
            f"Request rejected: {exc.message}",
            extra={
                "error_code": exc.error_code.value,
                "path": request.url.path,
                "request_id": get_request_id(request),
            },
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(api_v1_router, prefix=settings.API_V1_STR)

    return app


app = create_app()

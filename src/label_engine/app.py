"""FastAPI application factory for Label-Engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from label_engine.common.config import get_settings
from label_engine.common.exceptions import LabelError, RateLimitedError
from label_engine.common.logging import setup_logging
from label_engine.common.schemas import ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)


def _error_response(status_code: int, error: str, code: str, detail=None, headers=None) -> JSONResponse:
    body = ErrorResponse(error=error, code=code, detail=jsonable_encoder(detail))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from label_engine.deps import get_alert_service, get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        await get_alert_service().close()
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LabelError)
    async def label_error_handler(request: Request, exc: LabelError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        headers = None
        if isinstance(exc, RateLimitedError):
            headers = {"Retry-After": str(exc.retry_after)}
        return _error_response(exc.status_code, exc.message, exc.code, exc.detail, headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_response(400, "Invalid input", "INVALID_INPUT", exc.errors())

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from label_engine.checkout.router import router as checkout_router
    from label_engine.licensing.router import router as licensing_router
    from label_engine.ticketing.router import router as ticketing_router
    from label_engine.redemption.router import router as redemption_router
    from label_engine.alerts.router import router as alerts_router

    prefix = settings.api_prefix
    app.include_router(checkout_router, prefix=prefix, tags=["checkout"])
    app.include_router(licensing_router, prefix=prefix, tags=["licensing"])
    app.include_router(ticketing_router, prefix=prefix, tags=["tickets"])
    app.include_router(redemption_router, prefix=prefix, tags=["redemption"])
    app.include_router(alerts_router, prefix=prefix, tags=["fulfillment"])

    return app

"""
FastAPI application exposing the gateway over HTTP.

Run with:
    uvicorn market_gateway.api.app:create_app --factory --port 5000
    python main.py
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from market_gateway.api.routes import crypto, errors, fx, news, stocks
from market_gateway.exceptions import BadRequestError
from market_gateway.gateway import MarketDataGateway
from market_gateway.services.errors import ClassifiedError
from market_gateway.settings import Settings, global_settings


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(ClassifiedError)
    async def classified_error_handler(request: Request, exc: ClassifiedError):
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = ", ".join(str(e["loc"][-1]) for e in exc.errors())
        return JSONResponse(
            status_code=400,
            content={"error": f"Invalid parameters: {fields}", "code": BadRequestError.code},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": "Route not found"})
        content = {"error": exc.detail}
        if isinstance(exc, BadRequestError):
            content["code"] = exc.code
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        expose = settings.expose_errors and not settings.is_production
        message = str(exc) if expose else "Internal server error"
        return JSONResponse(status_code=500, content={"error": message})


def create_app(
    gateway: MarketDataGateway | None = None,
    settings: Settings = global_settings,
) -> FastAPI:
    """
    Create the API application.

    Args:
        gateway: Pre-built gateway (tests); built from settings otherwise
        settings: Process settings

    Returns:
        FastAPI app
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting market gateway ({settings.environment})")
        if getattr(app.state, "gateway", None) is None:
            app.state.gateway = MarketDataGateway.from_settings(settings)
        yield
        logger.info("Shutting down market gateway...")
        await app.state.gateway.close()
        logger.info("Market gateway stopped")

    app = FastAPI(title="Market Gateway", lifespan=lifespan)
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        client = request.client.host if request.client else "-"
        message = (
            f"{request.method} {request.url.path} {response.status_code} "
            f"- {duration_ms:.0f}ms - {client}"
        )
        if response.status_code >= 500:
            logger.error(message)
        elif response.status_code >= 400:
            logger.warning(message)
        else:
            logger.info(message)
        return response

    @app.get("/health")
    async def health_check():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/health/details")
    async def health_details(request: Request):
        return request.app.state.gateway.get_health_status()

    _register_exception_handlers(app, settings)

    for module in (stocks, crypto, fx, news, errors):
        app.include_router(module.router)

    return app

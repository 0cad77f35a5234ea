import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from contextlib import asynccontextmanager

from app.core.config import settings
from app.core.encryption import init_field_encryption
from app.core.exceptions import AppError, InternalError, ValidationError
from app.core.logging import setup_logging
from app.core.redis_client import init_redis
from app.api.v1.api import api_router

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

GENERIC_ERROR = {"detail": "Internal server error"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    # Note: Database tables are managed by Alembic migrations
    # A missing or malformed encryption key aborts startup here
    app.state.field_encryption = init_field_encryption(settings)
    app.state.redis = await init_redis(settings.REDIS_URL)
    yield
    # Shutdown
    await app.state.redis.aclose()


async def app_error_handler(request: Request, exc: AppError):
    if isinstance(exc, InternalError):
        logger.error("Internal error on %s %s: %r", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse(status_code=exc.status_code, content=GENERIC_ERROR)

    content = {"detail": exc.detail}
    if isinstance(exc, ValidationError) and exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]) or None,
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Invalid request", "errors": errors})


async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Storage error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=GENERIC_ERROR)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=GENERIC_ERROR)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Shared Notes API",
        description="Access control for owning and sharing notes and folders",
        version="1.0.0",
        lifespan=lifespan
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add trusted host middleware for production
    if not settings.DEBUG:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=["*"]  # Configure with your actual domains in production
        )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Include API router
    app.include_router(api_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {"message": "Shared Notes API", "version": "1.0.0"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        proxy_headers=True,  # Enable proxy headers support
        forwarded_allow_ips="*"  # Allow forwarded headers from any IP
    )

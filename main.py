"""
Main FastAPI Application.
Entry point for the Product Catalog & Quotation API.
"""

from fastapi import FastAPI, Request, status # type: ignore
from fastapi.middleware.cors import CORSMiddleware # type: ignore
from fastapi.responses import JSONResponse # type: ignore
from contextlib import asynccontextmanager
import time
from datetime import datetime

import psutil # type: ignore

from app.config import settings
from app.core.database import get_db_manager
from app.core.exceptions import AppException
from app.core.responses import ResponseHandler
from app.core.schema_manager import SchemaManager
from app.core.logging_config import setup_logging, get_logger, log_api_request

from app.api.routes import master_data_routes
from app.api.routes import product_attribute_routes
from app.api.routes import product_routes
from app.api.routes import quotation_routes
from app.api.routes import dashboard_routes


setup_logging(
    log_level="DEBUG" if settings.DEBUG else "INFO",
    enable_file_logging=settings.ENABLE_FILE_LOGGING
)

logger = get_logger(__name__)

API_PREFIX = "/api/v1"
SLOW_REQUEST_MS = 1000


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the pool and create the schema on startup; close the pool on shutdown."""
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION} ({settings.ENVIRONMENT})")

    db_manager = get_db_manager()
    if settings.AUTO_CREATE_SCHEMA:
        try:
            SchemaManager.initialize_schema()
        except Exception as e:
            logger.critical(f"Failed to initialize database schema: {str(e)}", exc_info=True)
            raise

    yield

    db_manager.close_pool()
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Product catalog with master data, dynamic attributes, Excel import and quotations",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log each request with its duration and tag the response with timing headers."""
    start_time = time.time()
    request.state.timestamp = datetime.utcnow().isoformat()

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    log_api_request(
        logger,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms
    )
    if duration_ms > SLOW_REQUEST_MS:
        logger.warning(f"Slow request: {request.method} {request.url.path} - {duration_ms:.2f}ms")

    response.headers["X-Request-ID"] = request.state.timestamp
    response.headers["X-Process-Time"] = f"{duration_ms:.2f}"
    return response


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Application errors that escape a route keep their status and error code."""
    logger.warning(f"{request.method} {request.url.path}: {exc.error_code} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ResponseHandler.error(exc.error_code, exc.message, exc.status_code, exc.details)
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ResponseHandler.error(
            "INTERNAL_ERROR",
            str(exc) if settings.DEBUG else "An unexpected error occurred",
            status.HTTP_500_INTERNAL_SERVER_ERROR
        )
    )


for router_module in (
    master_data_routes,
    product_attribute_routes,
    product_routes,
    quotation_routes,
    dashboard_routes,
):
    app.include_router(router_module.router, prefix=API_PREFIX)


@app.get("/health", tags=["System"])
async def health_check():
    """Pool state, a live `SELECT 1` and process memory/CPU."""
    db_manager = get_db_manager()
    pool_status = db_manager.get_pool_status()
    try:
        db_healthy = pool_status["initialized"] and db_manager.validate_connection()
    except AppException as e:
        logger.error(f"Health check database probe failed: {e.message}")
        db_healthy = False

    process = psutil.Process()
    return {
        "status": "healthy" if db_healthy else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": pool_status,
        "performance": {
            "memory_mb": round(process.memory_info().rss / 1024 / 1024, 2),
            "cpu_percent": round(process.cpu_percent(interval=0.1), 2)
        }
    }


@app.get("/", tags=["System"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "docs": "/api/docs",
        "health": "/health",
        "api_prefix": API_PREFIX
    }


if __name__ == "__main__":
    import uvicorn # type: ignore

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_config=None,
        access_log=False
    )

"""
Freight Integration Engine API.

Accounting-system files (Excel, CSV, XML) come in through
/api/integrations to be previewed, imported or compared with the stored
freight records; the same mappings drive exports back out.

Run: uvicorn main:app --reload
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import structlog
from datetime import datetime

from config import settings, check_connection
from routes.integrations import router as integrations_router

API_NAME = "Freight Integration Engine"
API_VERSION = "0.1.0"


def configure_logging() -> None:
    """JSON lines in production, coloured console output otherwise."""
    # filter_by_level reads the stdlib level
    logging.basicConfig(format="%(message)s", level=settings.log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.is_production
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the integration limits and whether the freight tables are reachable."""
    logger.info(
        "application_starting",
        environment=settings.environment,
        max_upload_mb=settings.max_upload_mb,
        price_tolerance=settings.price_tolerance,
        distance_tolerance=settings.distance_tolerance
    )

    db_status = check_connection()
    if db_status["status"] == "healthy":
        logger.info(
            "database_connected",
            fletes=db_status["fletes_count"],
            mappings=db_status["mappings_count"],
            logs=db_status["logs_count"]
        )
    else:
        logger.error("database_connection_failed", error=db_status.get("error"))

    yield

    logger.info("application_shutting_down")


app = FastAPI(
    title=API_NAME,
    description="Import, export and reconciliation of freight records with accounting systems",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Downloads carry their file name in Content-Disposition
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

app.include_router(integrations_router)


# ===================
# SERVICE ENDPOINTS
# ===================

@app.get("/health")
async def health_check():
    """Degraded when the freight tables cannot be counted."""
    db_status = check_connection()

    return {
        "status": "healthy" if db_status["status"] == "healthy" else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
        "database": db_status
    }


@app.get("/")
async def root():
    return {
        "name": f"{API_NAME} API",
        "version": API_VERSION,
        "docs": "/docs" if settings.debug else "Disabled in production",
        "health": "/health",
        "endpoints": {
            "mappings": "/api/integrations/mappings",
            "import": "/api/integrations/import",
            "compare": "/api/integrations/compare",
            "sync": "/api/integrations/sync",
            "export": "/api/integrations/export",
            "logs": "/api/integrations/logs"
        }
    }


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Anything the routes did not turn into an AppError.

    Same error envelope as AppError.to_dict(); details only in debug.
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )

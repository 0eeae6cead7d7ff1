"""
FastAPI backend for the workflow execution engine.

Dependency injection, modular services, one in-process job queue consumer
and an interval scheduler per process.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.container import container
from core.health import get_health_status, set_startup_time
from core.logging import configure_logging, get_logger
from routers import workflow, database, webhook
from services.execution import StorageError, WorkflowNotFoundError

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)

# Suppress noisy loggers
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logging.getLogger("apscheduler.scheduler").setLevel(logging.WARNING)
logging.getLogger("apscheduler.executors").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("watchfiles").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    # Startup
    logger.info("Starting workflow engine")
    set_startup_time()

    await container.database().startup()
    await container.workflow_service().start()

    if settings.scheduler_enabled:
        container.scheduler().start()

    await container.cleanup().start()

    logger.info("Services started successfully")
    yield

    # Shutdown (reverse order)
    await container.cleanup().stop()
    container.scheduler().shutdown()
    await container.workflow_service().stop()
    await container.database().shutdown()
    logger.info("Services shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="AutoFlow Workflow Engine",
    version="1.0.0",
    description="Queue-backed workflow execution engine with interval scheduling",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


@app.exception_handler(WorkflowNotFoundError)
async def workflow_not_found_handler(request: Request, exc: WorkflowNotFoundError):
    return ORJSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"success": False, "error": str(exc)}
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage failure", path=request.url.path, error=str(exc))
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": str(exc), "detail": "Storage unavailable"}
    )


# Add exception handler middleware BEFORE CORS to catch all errors
class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}", exc_info=True)
            return ORJSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": f"{type(e).__name__}: {str(e)}",
                    "detail": "Internal server error"
                }
            )

app.add_middleware(CatchAllExceptionsMiddleware)

# Add CORS middleware (must be AFTER exception middleware)
logger.info("Configuring CORS middleware",
           origins_count=len(settings.cors_origins),
           origins=settings.cors_origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

# Include routers
app.include_router(workflow.router)
app.include_router(database.router)
app.include_router(webhook.router)


@app.get("/health")
async def health_check():
    """Detailed health check."""
    health = await get_health_status(
        database=container.database(),
        workflow_service=container.workflow_service(),
        scheduler=container.scheduler() if settings.scheduler_enabled else None,
    )
    health.update({
        "service": "workflow-engine",
        "version": app.version,
        "environment": "development" if settings.is_development else "production",
    })
    return health


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting workflow engine",
               host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        reload_dirs=["."] if settings.debug else None,
        reload_excludes=["*.pyc", "__pycache__", "*.log", "*.db"] if settings.debug else None,
        workers=1,
        log_level="info" if settings.debug else "warning",
        access_log=settings.debug,
    )

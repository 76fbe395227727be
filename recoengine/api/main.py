"""FastAPI application main module.

This module defines the FastAPI application, its exception handlers and the
health, status and metrics endpoints of the recommendation service.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from recoengine import __version__
from recoengine.api.dependencies import Settings, get_engine_status
from recoengine.api.logging_config import RequestLoggingMiddleware, setup_logging
from recoengine.api.metrics import metrics_service
from recoengine.api.routes import personalize, recommend
from recoengine.exceptions import RecoEngineError

# Configure module logger
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(Settings.from_env().log_level)
    logger.info("Recommendation service starting", extra={"version": __version__})
    yield


# Create FastAPI application instance
app = FastAPI(
    title="RecoEngine API",
    description="Recommendation and personalization service",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(recommend.router)
app.include_router(personalize.router)


@app.exception_handler(RecoEngineError)
async def reco_engine_error_handler(request: Request, exc: RecoEngineError) -> JSONResponse:
    logger.warning(
        exc.message,
        extra={"path": str(request.url.path), "status_code": exc.status_code, "error_type": type(exc).__name__},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "details": {"errors": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
                for e in exc.errors()
            ]},
        },
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error",
        extra={"path": str(request.url.path), "error": str(exc), "error_type": type(exc).__name__},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "InternalServerError",
            "message": "An unexpected error occurred",
            "details": {},
        },
    )


@app.get("/ping")
def ping() -> Dict[str, str]:
    """Health check endpoint.

    Example:
        >>> response = client.get("/ping")
        >>> assert response.json() == {"status": "ok"}
    """
    return {"status": "ok"}


@app.get("/status")
def get_status() -> Dict[str, Any]:
    """Engine load state and the size of its data."""
    return {"version": __version__, **get_engine_status()}


@app.get("/metrics")
def get_metrics() -> Dict[str, Any]:
    """Recommendation call counts, latency and fallbacks."""
    return metrics_service.get_metrics()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "recoengine.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )

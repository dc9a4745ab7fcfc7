"""
FastAPI application setup and configuration.
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.exceptions import ConfigurationError, InvalidOperationError, NotFoundError
from server.middleware import RequestLoggingMiddleware

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "*"
API_TITLE = "Agent Runtime API"
API_VERSION = "1.0.0"


app = FastAPI(title=API_TITLE, version=API_VERSION)


# =============================================================================
# CORS
# =============================================================================

# Set CORS_ORIGINS to a comma-separated list to restrict origins outside development.
cors_origins_env = os.environ.get("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
cors_origins = (
    [origin.strip() for origin in cors_origins_env.split(",")]
    if cors_origins_env != DEFAULT_CORS_ORIGINS
    else [DEFAULT_CORS_ORIGINS]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Added after CORS so it runs first
app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Error mapping
# =============================================================================


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidOperationError)
async def invalid_operation_handler(request: Request, exc: InvalidOperationError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})

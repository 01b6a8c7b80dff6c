"""
FastAPI application entry point for the $ave+ backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend import admin_routes, function_routes, routes
from backend.config import get_settings
from models.gateway import GatewayError

logger = logging.getLogger(__name__)


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    logger.warning("[Gateway] %s failed with %d: %s", request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="$ave+ Backend", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.include_router(routes.router, prefix=settings.api_prefix)
    app.include_router(admin_routes.router, prefix=settings.api_prefix)
    app.include_router(function_routes.router, prefix=settings.api_prefix)
    return app


app = create_app()

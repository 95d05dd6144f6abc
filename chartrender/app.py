"""HTTP application exposing the rendering engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .registry import LIBRARY_REGISTRY
from .schemas import (
    Base64Response,
    InternalServerErrorResponse,
    LibraryConfig,
    RenderRequest,
    internal_error,
)
from .settings import Config

logger = logging.getLogger(__name__)

API_TITLE = "Renderer Engine API"
API_VERSION = "1.0"


@dataclass
class AppState:
    """Shared objects the request handlers work with."""

    engine: Any


def _normalise_prefix(prefix: str) -> str:
    stripped = prefix.strip("/")
    return f"/{stripped}" if stripped else ""


def _app_state(request: Request) -> AppState:
    return request.app.state.app_state


def _failure(exc: Exception) -> JSONResponse:
    logger.error("Render error: %s", exc)
    body = internal_error("route.render", "render", "Rendering failed", str(exc))
    return JSONResponse(status_code=500, content=body.model_dump())


def _build_router() -> APIRouter:
    router = APIRouter()

    @router.post(
        "/render",
        tags=["Render"],
        summary="Render",
        response_model=None,
        responses={
            200: {
                "content": {
                    "application/octet-stream": {},
                    "application/json": {"schema": Base64Response.model_json_schema()},
                }
            },
            500: {"model": InternalServerErrorResponse},
        },
    )
    async def render(payload: RenderRequest, request: Request) -> Response:
        """Generate an image from a configuration using a headless browser.

        Supports ECharts, Chart.js and Konva.js.
        """
        logger.info(
            "Rendering: library=%s, size=%dx%d",
            payload.library.name,
            payload.options.width,
            payload.options.height,
        )
        engine = _app_state(request).engine

        if payload.options.return_base64:
            try:
                result = await engine.render_base64(payload)
            except Exception as exc:  # every failure becomes a 500 body
                return _failure(exc)
            return JSONResponse(content=result.model_dump())

        try:
            image = await engine.render(payload)
        except Exception as exc:  # every failure becomes a 500 body
            return _failure(exc)
        return Response(
            content=image,
            media_type="application/octet-stream",
            headers={"Content-Disposition": "attachment"},
        )

    @router.get(
        "/libraries",
        summary="List Supported Libraries",
        response_model=List[LibraryConfig],
        responses={500: {"model": InternalServerErrorResponse}},
    )
    async def list_libraries() -> List[LibraryConfig]:
        """Get the list of all supported libraries."""
        return [
            LibraryConfig(name=name, version="latest", cdn_url=template.cdn_url)
            for name, template in LIBRARY_REGISTRY.items()
        ]

    @router.get("/health")
    async def health(request: Request) -> Dict[str, Any]:
        """Report the browser pool and render slot usage."""
        status = _app_state(request).engine.health_check()
        return {
            "status": "healthy",
            "browser_pool": {
                "available": status.pool_size,
                "capacity": status.total_capacity,
                "utilization_pct": (status.total_capacity - status.pool_size)
                / status.total_capacity
                * 100.0,
            },
            "render_slots": {
                "available": status.available_permits,
                "capacity": status.max_concurrent,
                "utilization_pct": (status.max_concurrent - status.available_permits)
                / status.max_concurrent
                * 100.0,
            },
        }

    return router


def create_app(state: AppState, config: Config) -> FastAPI:
    """Build the application serving the API under ``config.prefix``."""
    prefix = config.prefix if config.prefix is not None else "/"
    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        docs_url="/docs",
        openapi_url="/openapi.json",
        redoc_url=None,
    )
    app.state.app_state = state
    app.include_router(_build_router(), prefix=_normalise_prefix(prefix))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app
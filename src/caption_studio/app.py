"""FastAPI application for caption-studio."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .api import router as api_router
from .config import ensure_dirs, get_exports_dir, get_media_dir
from .core.scheduler import CleanupScheduler
from .errors import CaptionStudioError
from .server import mcp

logger = logging.getLogger(__name__)

# HTTP status per error code
ERROR_STATUS = {
    "config_error": 500,
    "auth_error": 502,
    "io_error": 500,
    "file_not_found": 404,
    "invalid_media": 400,
    "invalid_input": 422,
    "transcription_error": 502,
    "render_error": 500,
    "not_found": 404,
}

# Create global cleanup scheduler instance
cleanup_scheduler = CleanupScheduler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan."""
    ensure_dirs()

    await cleanup_scheduler.start()

    # Initialize MCP session manager (required for streamable HTTP)
    mcp.streamable_http_app()
    async with mcp.session_manager.run():
        yield

    await cleanup_scheduler.stop()


app = FastAPI(
    title="Caption Studio",
    description="Generate, edit and burn in video captions",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(CaptionStudioError)
async def caption_studio_error_handler(request: Request, exc: CaptionStudioError):
    """Return classified failures as structured JSON."""
    status_code = ERROR_STATUS.get(exc.code, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: [{exc.code}] {exc.message}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# Include REST API routes
app.include_router(api_router, prefix="/api", tags=["API"])

# Uploaded videos and rendered exports are served straight from disk
app.mount("/media", StaticFiles(directory=get_media_dir(), check_dir=False), name="media")
app.mount("/exports", StaticFiles(directory=get_exports_dir(), check_dir=False), name="exports")

# Mount MCP server routes (streamable HTTP only, provides /mcp endpoint)
app.mount("/", mcp.streamable_http_app())


def main():
    """Run the server (CAPTION_STUDIO_HOST / CAPTION_STUDIO_PORT override the bind address)."""
    import uvicorn

    uvicorn.run(
        "caption_studio.app:app",
        host=os.environ.get("CAPTION_STUDIO_HOST", "0.0.0.0"),
        port=int(os.environ.get("CAPTION_STUDIO_PORT", "8000")),
        reload=False,
    )


if __name__ == "__main__":
    main()

"""REST API routes for caption-studio."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, File, UploadFile
from pydantic import BaseModel, Field

from .core import (
    delete_video,
    generate_captions,
    get_video,
    list_exports,
    list_videos,
    load_captions,
    render_export,
    run_cleanup,
    save_captions,
    upload_video,
)
from .models import CaptionSegment, CaptionStyle

router = APIRouter()


# Pydantic models for request bodies
class GenerateCaptionsRequest(BaseModel):
    """Request body for caption generation."""
    video_id: str
    language: str | None = Field(default=None, description="Language code; omit to auto-detect")


class SaveCaptionsRequest(BaseModel):
    """Request body for saving edited captions."""
    video_id: str
    captions: list[CaptionSegment]
    caption_id: str | None = None


class RenderExportRequest(BaseModel):
    """Request body for rendering a captioned video."""
    video_id: str
    captions: list[CaptionSegment]
    style: CaptionStyle = CaptionStyle.BOTTOM
    caption_id: str | None = None


@router.get("/health")
async def health():
    """Health check and service info."""
    return {
        "name": "caption-studio",
        "version": "0.1.0",
        "status": "healthy",
        "endpoints": {
            "api": "/api",
            "mcp": "/mcp",
            "docs": "/docs",
        },
    }


@router.post("/upload")
async def api_upload(video: Annotated[UploadFile, File(description="Video file")]):
    """Upload a video file."""
    data = await video.read()
    return upload_video(video.filename or "video.mp4", data, video.content_type)


@router.get("/videos")
async def api_list_videos():
    """List all videos, newest first."""
    return list_videos()


@router.get("/videos/{video_id}")
async def api_get_video(video_id: str):
    """Get a video by ID."""
    return get_video(video_id)


@router.delete("/videos/{video_id}")
async def api_delete_video(video_id: str):
    """Delete a video and its stored file."""
    return delete_video(video_id)


@router.post("/captions/generate")
async def api_generate_captions(request: GenerateCaptionsRequest):
    """
    Transcribe a video and save the captions.

    Blocks until the transcription provider finishes; long videos can take
    several minutes.
    """
    return await generate_captions(request.video_id, request.language)


@router.post("/captions/save")
async def api_save_captions(request: SaveCaptionsRequest):
    """Save edited captions (updates caption_id if given)."""
    return save_captions(request.video_id, request.captions, request.caption_id)


@router.get("/captions/{video_id}")
async def api_load_captions(video_id: str):
    """Load the most recent captions for a video."""
    return load_captions(video_id)


@router.post("/render/export")
async def api_render_export(request: RenderExportRequest):
    """Render the video with captions burned in and return a download link."""
    return await render_export(request.video_id, request.captions, request.style, request.caption_id)


@router.get("/exports/{video_id}")
async def api_list_exports(video_id: str):
    """List exports for a video."""
    return list_exports(video_id)


@router.post("/exports/cleanup")
async def api_cleanup_exports():
    """Delete rendered exports older than the configured retention period now."""
    return await run_cleanup()

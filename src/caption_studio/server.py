"""MCP server for caption-studio using FastMCP."""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from .core import (
    generate_captions,
    load_captions,
    parse_captions,
    parse_style,
    render_export,
    resplit,
    save_captions,
)
from .errors import CaptionStudioError, InvalidInputError

# Disable DNS rebinding protection to allow any Host header (for Docker/reverse proxy)
mcp = FastMCP(
    "caption-studio",
    transport_security=TransportSecuritySettings(enable_dns_rebinding_protection=False),
)

# =============================================================================
# TOOL USAGE GUIDANCE FOR AI ASSISTANTS:
#
#   1. caption_studio_generate_captions → Transcribe an uploaded video
#   2. caption_studio_resplit_captions  → Optional: shorten long captions
#   3. caption_studio_save_captions     → Persist edits
#   4. caption_studio_render_export     → Burn captions into a new video
#
# Videos are uploaded through the REST API (POST /api/upload).
# =============================================================================


@mcp.tool(name="caption_studio_generate_captions")
async def tool_generate_captions(video_id: str, language: str | None = None) -> dict:
    """
    Generate timed captions for an uploaded video.

    Args:
        video_id: Video ID returned by the upload endpoint
        language: Language code (e.g. 'en', 'hi'); omit to auto-detect
    """
    try:
        return await generate_captions(video_id, language)
    except CaptionStudioError as e:
        return e.to_dict()


@mcp.tool(name="caption_studio_resplit_captions")
def tool_resplit_captions(captions: list[dict[str, Any]], max_duration: float = 5.0) -> dict:
    """
    Split captions longer than max_duration seconds into shorter ones.

    Args:
        captions: Caption list ({id, start, end, text})
        max_duration: Longest allowed caption in seconds
    """
    try:
        segments = parse_captions(captions)
        if max_duration <= 0:
            raise InvalidInputError(f"max_duration must be > 0, got {max_duration}")
    except CaptionStudioError as e:
        return e.to_dict()

    segments = resplit(segments, max_duration)
    return {"success": True, "captions": [s.model_dump() for s in segments]}


@mcp.tool(name="caption_studio_save_captions")
def tool_save_captions(video_id: str, captions: list[dict[str, Any]], caption_id: str | None = None) -> dict:
    """
    Save edited captions for a video.

    Args:
        video_id: Video ID
        captions: Caption list ({id, start, end, text})
        caption_id: Existing caption set to update; omit to create a new one
    """
    try:
        return save_captions(video_id, captions, caption_id)
    except CaptionStudioError as e:
        return e.to_dict()


@mcp.tool(name="caption_studio_load_captions")
def tool_load_captions(video_id: str) -> dict:
    """
    Load the most recent captions saved for a video.

    Args:
        video_id: Video ID
    """
    try:
        return load_captions(video_id)
    except CaptionStudioError as e:
        return e.to_dict()


@mcp.tool(name="caption_studio_render_export")
async def tool_render_export(video_id: str, captions: list[dict[str, Any]], style: str = "bottom") -> dict:
    """
    Render the video with captions burned in.

    Rendering is slow (roughly real time or slower). Returns a download URL.

    Args:
        video_id: Video ID
        captions: Final caption list ({id, start, end, text})
        style: Caption style: 'bottom', 'top' or 'karaoke'
    """
    try:
        return await render_export(video_id, parse_captions(captions), parse_style(style))
    except CaptionStudioError as e:
        return e.to_dict()

"""Tests for the MCP tool functions."""

from __future__ import annotations

import pytest

from caption_studio.server import (
    mcp,
    tool_generate_captions,
    tool_load_captions,
    tool_render_export,
    tool_resplit_captions,
    tool_save_captions,
)


@pytest.mark.asyncio
async def test_tools_registered():
    names = {tool.name for tool in await mcp.list_tools()}

    assert names == {
        "caption_studio_generate_captions",
        "caption_studio_resplit_captions",
        "caption_studio_save_captions",
        "caption_studio_load_captions",
        "caption_studio_render_export",
    }


def test_resplit_tool():
    result = tool_resplit_captions([{"id": 4, "start": 10, "end": 22, "text": "one two three four five six"}], 5)

    assert result["success"] is True
    assert [c["text"] for c in result["captions"]] == ["one two", "three four", "five six"]
    assert [c["id"] for c in result["captions"]] == [1, 2, 3]


def test_save_and_load_tools(uploaded_video):
    captions = [{"id": 1, "start": 0, "end": 1, "text": "hi"}]

    saved = tool_save_captions(uploaded_video.id, captions)
    loaded = tool_load_captions(uploaded_video.id)

    assert loaded["caption_id"] == saved["caption_id"]
    assert loaded["captions"] == captions


def test_errors_returned_as_dict():
    assert tool_load_captions("nope") == {
        "success": False,
        "error": "not_found",
        "message": "Captions not found for video nope",
    }


def test_resplit_tool_rejects_bad_input():
    inverted = tool_resplit_captions([{"id": 1, "start": 5, "end": 1, "text": "backwards"}])
    zero = tool_resplit_captions([{"id": 1, "start": 0, "end": 1, "text": "hi"}], 0)

    assert inverted["success"] is False
    assert inverted["error"] == "invalid_input"
    assert zero["error"] == "invalid_input"


@pytest.mark.asyncio
async def test_render_tool_rejects_unknown_style(uploaded_video):
    result = await tool_render_export(uploaded_video.id, [{"id": 1, "start": 0, "end": 1, "text": "hi"}], "sideways")

    assert result["success"] is False
    assert result["error"] == "invalid_input"
    assert "sideways" in result["message"]


@pytest.mark.asyncio
async def test_render_tool_rejects_malformed_captions(uploaded_video):
    result = await tool_render_export(uploaded_video.id, [{"id": 1, "text": "no timing"}])

    assert result["success"] is False
    assert result["error"] == "invalid_input"


def test_save_tool_rejects_malformed_captions(uploaded_video):
    result = tool_save_captions(uploaded_video.id, [{"id": 1, "start": "later", "end": 1, "text": "x"}])

    assert result["error"] == "invalid_input"


def test_save_tool_rejects_path_like_caption_id(uploaded_video):
    captions = [{"id": 1, "start": 0, "end": 1, "text": "hi"}]

    result = tool_save_captions(uploaded_video.id, captions, caption_id="../videos/" + uploaded_video.id)

    assert result["error"] == "not_found"


@pytest.mark.asyncio
async def test_generate_tool_reports_missing_video():
    result = await tool_generate_captions("nope")

    assert result["success"] is False
    assert result["error"] == "not_found"

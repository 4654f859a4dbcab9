"""Caption and export operations exposed to the API and MCP layers.

These functions own the lifecycle records: they write the video and export
status transitions around the transcription client and render
orchestrator, which themselves never touch persistence.
"""

from __future__ import annotations

import asyncio
import logging
import re
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Sequence

from pydantic import ValidationError

from ..config import get_exports_dir, get_public_base_url, get_render_config
from ..config.render_engine import RemotionCliEngine
from ..errors import InvalidInputError, MediaIOError, NotFoundError
from ..models import (
    CaptionSegment,
    CaptionSet,
    CaptionStyle,
    Export,
    ExportStatus,
    RenderProgress,
    Video,
    VideoStatus,
)
from .records import RecordStore
from .render import RenderOrchestrator
from .storage import LocalStorage
from .transcription import TranscriptionClient

logger = logging.getLogger(__name__)

ALLOWED_VIDEO_TYPES = ("video/mp4", "video/mpeg", "video/quicktime", "video/x-msvideo")
MAX_UPLOAD_BYTES = 100 * 1024 * 1024


def default_orchestrator() -> RenderOrchestrator:
    """Build an orchestrator around the configured Remotion CLI."""
    config = get_render_config()
    return RenderOrchestrator(RemotionCliEngine(command=config["remotion_command"]))


def parse_captions(captions: Sequence[CaptionSegment | dict[str, Any]]) -> list[CaptionSegment]:
    """Validate caller-supplied captions, raising InvalidInputError."""
    try:
        return [CaptionSegment.model_validate(c) for c in captions]
    except ValidationError as e:
        raise InvalidInputError(f"Invalid captions: {e}") from e


def parse_style(style: CaptionStyle | str) -> CaptionStyle:
    try:
        return CaptionStyle(style)
    except ValueError as e:
        allowed = ", ".join(s.value for s in CaptionStyle)
        raise InvalidInputError(f"Unknown caption style {style!r} (expected one of: {allowed})") from e


def _mark_video_error(store: RecordStore, video_id: str) -> None:
    try:
        store.update_video_status(video_id, VideoStatus.ERROR)
    except NotFoundError:
        logger.warning(f"Video {video_id} was deleted during transcription")


def _sanitize_filename(filename: str) -> str:
    return re.sub(r"[^a-zA-Z0-9.-]", "_", filename)


# Videos


def upload_video(
    filename: str,
    data: bytes,
    content_type: str | None,
    *,
    store: RecordStore | None = None,
    storage: LocalStorage | None = None,
) -> dict[str, Any]:
    """
    Store an uploaded video and create its record.

    Args:
        filename: Original client filename
        data: File contents
        content_type: MIME type reported by the client

    Returns:
        dict with the new video id and its public URL
    """
    store = store or RecordStore()
    storage = storage or LocalStorage()

    if content_type not in ALLOWED_VIDEO_TYPES:
        raise MediaIOError(f"Invalid file type {content_type!r}. Only video files are allowed.", code="invalid_media")
    if len(data) > MAX_UPLOAD_BYTES:
        raise MediaIOError(f"File too large: {len(data)} bytes (max {MAX_UPLOAD_BYTES})", code="invalid_media")

    storage_path = f"{int(time.time() * 1000)}-{_sanitize_filename(filename)}"
    storage.upload(storage_path, data, content_type)

    video = store.create_video(
        Video(
            original_filename=filename,
            storage_path=storage_path,
            public_url=storage.get_public_url(storage_path),
            file_size=len(data),
            mime_type=content_type,
        )
    )
    logger.info(f"Video uploaded: {video.id} ({len(data) / 1024 / 1024:.2f} MB)")

    return {
        "success": True,
        "video_id": video.id,
        "public_url": video.public_url,
        "video": video.model_dump(mode="json"),
    }


def list_videos(*, store: RecordStore | None = None) -> dict[str, Any]:
    """List all videos, newest first."""
    store = store or RecordStore()
    videos = store.list_videos()
    return {
        "success": True,
        "videos": [v.model_dump(mode="json") for v in videos],
        "count": len(videos),
    }


def get_video(video_id: str, *, store: RecordStore | None = None) -> dict[str, Any]:
    store = store or RecordStore()
    return {"success": True, "video": store.get_video(video_id).model_dump(mode="json")}


def delete_video(
    video_id: str,
    *,
    store: RecordStore | None = None,
    storage: LocalStorage | None = None,
) -> dict[str, Any]:
    """
    Delete a video record and its stored file.

    Storage deletion is best effort: a failure is logged and the record is
    deleted anyway.
    """
    store = store or RecordStore()
    storage = storage or LocalStorage()

    video = store.get_video(video_id)
    if video.storage_path:
        try:
            storage.delete(video.storage_path)
        except MediaIOError as e:
            logger.warning(f"Storage deletion failed for {video.storage_path}: {e}")

    store.delete_video(video_id)
    logger.info(f"Video deleted: {video_id}")
    return {"success": True, "message": "Video deleted successfully"}


# Captions


async def generate_captions(
    video_id: str,
    language: str | None = None,
    *,
    store: RecordStore | None = None,
    storage: LocalStorage | None = None,
    client: TranscriptionClient | None = None,
) -> dict[str, Any]:
    """
    Transcribe a stored video and save the result as a new caption set.

    The video moves uploaded -> transcribing -> transcribed, or to error if
    anything fails. The temporary local copy is removed on every path.

    Args:
        video_id: Video to transcribe
        language: Language code hint (None = auto-detect)

    Returns:
        dict with captions, language, duration and caption_id
    """
    store = store or RecordStore()
    storage = storage or LocalStorage()
    client = client or TranscriptionClient()

    video = store.get_video(video_id)
    logger.info(f"Starting transcription for video {video_id} (language: {language or 'auto-detect'})")
    store.update_video_status(video_id, VideoStatus.TRANSCRIBING)

    try:
        with tempfile.TemporaryDirectory(prefix="caption-studio-") as tmpdir:
            media_path = Path(tmpdir) / f"source{Path(video.storage_path).suffix or '.mp4'}"
            data = await asyncio.to_thread(storage.download, video.storage_path)
            await asyncio.to_thread(media_path.write_bytes, data)
            result = await client.transcribe(media_path, language)

        caption_set = store.create_caption_set(
            CaptionSet(
                video_id=video_id,
                caption_data=result.captions,
                style=CaptionStyle.BOTTOM,
                language=result.language,
            )
        )
        store.update_video_status(video_id, VideoStatus.TRANSCRIBED)
    except asyncio.CancelledError:
        logger.warning(f"Caption generation cancelled for video {video_id}")
        _mark_video_error(store, video_id)
        raise
    except Exception as e:
        logger.error(f"Caption generation failed for video {video_id}: {e}")
        _mark_video_error(store, video_id)
        raise

    return {
        "success": True,
        "captions": [c.model_dump() for c in result.captions],
        "language": result.language,
        "duration": result.duration,
        "caption_id": caption_set.id,
    }


def save_captions(
    video_id: str,
    captions: Sequence[CaptionSegment | dict[str, Any]],
    caption_id: str | None = None,
    *,
    store: RecordStore | None = None,
) -> dict[str, Any]:
    """
    Save edited captions, updating caption_id if given or creating a new set.

    Returns:
        dict with the caption set id
    """
    store = store or RecordStore()
    segments = parse_captions(captions)

    if caption_id:
        caption_set = store.update_caption_data(caption_id, segments)
    else:
        caption_set = store.create_caption_set(CaptionSet(video_id=video_id, caption_data=segments))

    logger.info(f"Saved {len(segments)} captions for video {video_id}")
    return {"success": True, "message": "Captions saved successfully", "caption_id": caption_set.id}


def load_captions(video_id: str, *, store: RecordStore | None = None) -> dict[str, Any]:
    """Load the most recent caption set for a video."""
    store = store or RecordStore()
    caption_sets = store.list_caption_sets(video_id)
    if not caption_sets:
        raise NotFoundError(f"Captions not found for video {video_id}")

    latest = caption_sets[0]
    return {
        "success": True,
        "captions": [c.model_dump() for c in latest.caption_data],
        "caption_id": latest.id,
        "style": latest.style.value,
        "language": latest.language,
    }


# Exports


async def render_export(
    video_id: str,
    captions: Sequence[CaptionSegment | dict[str, Any]],
    style: CaptionStyle | str,
    caption_id: str | None = None,
    *,
    store: RecordStore | None = None,
    orchestrator: RenderOrchestrator | None = None,
    exports_dir: Path | None = None,
    on_progress: Callable[[RenderProgress], None] | None = None,
) -> dict[str, Any]:
    """
    Render a video with captions burned in.

    The export record moves queued -> rendering -> completed, or to failed
    with the error message.

    Returns:
        dict with export_id, filename, path and download_url
    """
    store = store or RecordStore()
    orchestrator = orchestrator or default_orchestrator()
    exports_dir = Path(exports_dir) if exports_dir is not None else get_exports_dir()

    video = store.get_video(video_id)
    segments = parse_captions(captions)
    style = parse_style(style)

    filename = f"{Path(video.original_filename).stem}-captioned-{int(time.time() * 1000)}.mp4"
    output_path = exports_dir / filename
    export = store.create_export(
        Export(video_id=video_id, caption_id=caption_id, style=style, output_path=str(output_path))
    )

    logger.info(f"Export {export.id}: rendering {video.original_filename} with {len(segments)} captions")
    store.update_export_status(export.id, ExportStatus.RENDERING)
    try:
        result = await orchestrator.render_with_captions(
            video.public_url, segments, style, output_path, on_progress=on_progress
        )
    except asyncio.CancelledError:
        logger.warning(f"Export {export.id} cancelled")
        store.update_export_status(export.id, ExportStatus.FAILED, "Render cancelled")
        raise
    except Exception as e:
        logger.error(f"Export {export.id} failed: {e}")
        store.update_export_status(export.id, ExportStatus.FAILED, str(e))
        raise

    store.complete_export(export.id, result.output_path)
    return {
        "success": True,
        "message": "Video rendered successfully",
        "export_id": export.id,
        "filename": filename,
        "path": f"/exports/{filename}",
        "download_url": f"{get_public_base_url()}/exports/{filename}",
        "duration_seconds": result.duration_seconds,
        "render_seconds": result.render_seconds,
    }


def list_exports(video_id: str, *, store: RecordStore | None = None) -> dict[str, Any]:
    """List exports for a video, newest first."""
    store = store or RecordStore()
    store.get_video(video_id)
    exports = store.list_exports(video_id)
    return {
        "success": True,
        "exports": [e.model_dump(mode="json") for e in exports],
        "count": len(exports),
    }

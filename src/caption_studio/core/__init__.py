"""Core functionality for caption-studio."""

from .captions import (
    delete_video,
    generate_captions,
    get_video,
    list_exports,
    list_videos,
    load_captions,
    parse_captions,
    parse_style,
    render_export,
    save_captions,
    upload_video,
)
from .cleanup import cleanup_expired_exports
from .records import RecordStore
from .render import BundleCache, RenderOrchestrator, default_bundle_cache
from .scheduler import CleanupScheduler, run_cleanup
from .segments import build_segments, resplit, to_frame_captions
from .storage import LocalStorage
from .transcription import TranscriptionClient

__all__ = [
    "build_segments",
    "resplit",
    "to_frame_captions",
    "TranscriptionClient",
    "RenderOrchestrator",
    "BundleCache",
    "default_bundle_cache",
    "RecordStore",
    "LocalStorage",
    # Operations
    "upload_video",
    "list_videos",
    "get_video",
    "delete_video",
    "generate_captions",
    "save_captions",
    "load_captions",
    "render_export",
    "parse_captions",
    "parse_style",
    "list_exports",
    # Cleanup
    "cleanup_expired_exports",
    "CleanupScheduler",
    "run_cleanup",
]

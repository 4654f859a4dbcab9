"""Lifecycle records (videos, caption sets, exports) stored as JSON files."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from ..config import get_records_dir
from ..errors import NotFoundError
from ..models import (
    CaptionSegment,
    CaptionSet,
    CaptionStyle,
    Export,
    ExportStatus,
    Video,
    VideoStatus,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

# Ids become file names, so they must be a single path segment
_RECORD_ID = re.compile(r"[A-Za-z0-9_-]+")


class RecordStore:
    """
    File-backed store with one JSON file per record.

    Structure: {root}/{videos,captions,exports}/{id}.json
    """

    def __init__(self, root: Path | None = None):
        self.root = Path(root) if root is not None else get_records_dir()

    def _table_dir(self, table: str) -> Path:
        table_dir = self.root / table
        table_dir.mkdir(parents=True, exist_ok=True)
        return table_dir

    def _record_file(self, table: str, record_id: str, model: type[BaseModel]) -> Path:
        if not _RECORD_ID.fullmatch(record_id):
            raise NotFoundError(f"{model.__name__} not found: {record_id}")
        return self._table_dir(table) / f"{record_id}.json"

    def _save(self, table: str, record: BaseModel) -> None:
        record_file = self._record_file(table, record.id, type(record))
        with open(record_file, "w") as f:
            json.dump(record.model_dump(mode="json"), f, indent=2, ensure_ascii=False)

    def _load(self, table: str, model: type[RecordT], record_id: str) -> RecordT:
        record_file = self._record_file(table, record_id, model)
        if not record_file.exists():
            raise NotFoundError(f"{model.__name__} not found: {record_id}")
        with open(record_file) as f:
            return model.model_validate(json.load(f))

    def _list(self, table: str, model: type[RecordT], video_id: str | None = None) -> list[RecordT]:
        """List records newest first, optionally filtered by video."""
        records = []
        for record_file in self._table_dir(table).glob("*.json"):
            try:
                with open(record_file) as f:
                    record = model.model_validate(json.load(f))
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                logger.warning(f"Skipping unreadable record {record_file}: {e}")
                continue
            if video_id is not None and getattr(record, "video_id", None) != video_id:
                continue
            records.append(record)
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    def _delete(self, table: str, record_id: str) -> None:
        (self._table_dir(table) / f"{record_id}.json").unlink(missing_ok=True)

    # Videos

    def create_video(self, video: Video) -> Video:
        self._save("videos", video)
        return video

    def get_video(self, video_id: str) -> Video:
        return self._load("videos", Video, video_id)

    def list_videos(self) -> list[Video]:
        return self._list("videos", Video)

    def update_video_status(self, video_id: str, status: VideoStatus) -> Video:
        video = self.get_video(video_id)
        video.status = status
        video.updated_at = datetime.now()
        self._save("videos", video)
        return video

    def delete_video(self, video_id: str) -> None:
        """Delete a video along with its caption sets and exports."""
        self.get_video(video_id)
        for caption_set in self.list_caption_sets(video_id):
            self._delete("captions", caption_set.id)
        for export in self.list_exports(video_id):
            self._delete("exports", export.id)
        self._delete("videos", video_id)

    # Caption sets

    def create_caption_set(self, caption_set: CaptionSet) -> CaptionSet:
        self.get_video(caption_set.video_id)
        self._save("captions", caption_set)
        return caption_set

    def get_caption_set(self, caption_id: str) -> CaptionSet:
        return self._load("captions", CaptionSet, caption_id)

    def list_caption_sets(self, video_id: str) -> list[CaptionSet]:
        return self._list("captions", CaptionSet, video_id)

    def update_caption_data(self, caption_id: str, captions: Sequence[CaptionSegment]) -> CaptionSet:
        caption_set = self.get_caption_set(caption_id)
        caption_set.caption_data = list(captions)
        caption_set.updated_at = datetime.now()
        self._save("captions", caption_set)
        return caption_set

    def update_caption_style(self, caption_id: str, style: CaptionStyle) -> CaptionSet:
        caption_set = self.get_caption_set(caption_id)
        caption_set.style = CaptionStyle(style)
        caption_set.updated_at = datetime.now()
        self._save("captions", caption_set)
        return caption_set

    # Exports

    def create_export(self, export: Export) -> Export:
        self.get_video(export.video_id)
        self._save("exports", export)
        return export

    def get_export(self, export_id: str) -> Export:
        return self._load("exports", Export, export_id)

    def list_exports(self, video_id: str | None = None) -> list[Export]:
        return self._list("exports", Export, video_id)

    def update_export_status(self, export_id: str, status: ExportStatus, error_message: str | None = None) -> Export:
        export = self.get_export(export_id)
        export.status = status
        export.error_message = error_message
        export.updated_at = datetime.now()
        self._save("exports", export)
        return export

    def complete_export(self, export_id: str, output_path: str) -> Export:
        export = self.get_export(export_id)
        export.status = ExportStatus.COMPLETED
        export.output_path = output_path
        export.error_message = None
        export.updated_at = datetime.now()
        self._save("exports", export)
        return export

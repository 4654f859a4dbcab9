"""Data models for caption-studio."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class CaptionStyle(str, Enum):
    """Caption placement/style tag understood by the render composition."""

    BOTTOM = "bottom"
    TOP = "top"
    KARAOKE = "karaoke"


class CaptionSegment(BaseModel):
    """A timed caption unit (seconds)."""

    id: int
    start: float = Field(ge=0)
    end: float = Field(ge=0)
    text: str

    @model_validator(mode="after")
    def _check_order(self) -> CaptionSegment:
        if self.end < self.start:
            raise ValueError(f"caption {self.id}: end {self.end} is before start {self.start}")
        return self

    @property
    def duration(self) -> float:
        return self.end - self.start


class WordToken(BaseModel):
    """A transcribed word with millisecond timestamps."""

    text: str
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    confidence: float | None = None

    @model_validator(mode="after")
    def _check_order(self) -> WordToken:
        if self.end < self.start:
            raise ValueError(f"word {self.text!r}: end {self.end}ms is before start {self.start}ms")
        return self


class TranscriptStatus(str, Enum):
    """Normalized provider job status."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class TranscriptionJob(BaseModel):
    """Provider transcript payload, validated at the boundary."""

    id: str
    status: TranscriptStatus
    text: str | None = None
    words: list[WordToken] | None = None
    language_code: str | None = None
    audio_duration: float | None = None
    error: str | None = None


class TranscriptionResult(BaseModel):
    """Result of a completed transcription."""

    captions: list[CaptionSegment]
    language: str
    duration: float


class Composition(BaseModel):
    """Concrete composition metadata resolved for a given input."""

    id: str
    duration_in_frames: int = Field(gt=0)
    fps: float = Field(gt=0)
    width: int = Field(gt=0)
    height: int = Field(gt=0)

    @property
    def duration_seconds(self) -> float:
        return self.duration_in_frames / self.fps


class RenderProgress(BaseModel):
    """A single progress callback from the renderer."""

    progress: float = Field(ge=0, le=1)
    rendered_frames: int = 0
    encoded_frames: int = 0
    stage: Literal["rendering", "encoding"] = "rendering"


class RenderResult(BaseModel):
    """Result of a finished render."""

    output_path: str
    duration_seconds: float
    render_seconds: float


# Lifecycle records


def _new_id() -> str:
    return uuid.uuid4().hex


class VideoStatus(str, Enum):
    """Video lifecycle status."""

    UPLOADED = "uploaded"
    TRANSCRIBING = "transcribing"
    TRANSCRIBED = "transcribed"
    ERROR = "error"


class ExportStatus(str, Enum):
    """Export lifecycle status."""

    QUEUED = "queued"
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"


class Video(BaseModel):
    """An uploaded source video."""

    id: str = Field(default_factory=_new_id)
    original_filename: str
    storage_path: str
    public_url: str
    file_size: int | None = None
    mime_type: str | None = None
    status: VideoStatus = VideoStatus.UPLOADED
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class CaptionSet(BaseModel):
    """A saved set of captions for a video."""

    id: str = Field(default_factory=_new_id)
    video_id: str
    caption_data: list[CaptionSegment] = Field(default_factory=list)
    style: CaptionStyle = CaptionStyle.BOTTOM
    language: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class Export(BaseModel):
    """A render of a video with captions burned in."""

    id: str = Field(default_factory=_new_id)
    video_id: str
    caption_id: str | None = None
    style: CaptionStyle = CaptionStyle.BOTTOM
    status: ExportStatus = ExportStatus.QUEUED
    output_path: str | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

"""Render performance profiles, selected by deployment environment."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .settings import is_production


class RenderProfile(str, Enum):
    """Deployment profile for the renderer."""

    PRODUCTION = "production"
    DEVELOPMENT = "development"

    @classmethod
    def from_environment(cls) -> RenderProfile:
        return cls.PRODUCTION if is_production() else cls.DEVELOPMENT

    @property
    def settings(self) -> RenderSettings:
        return PROFILES[self]


@dataclass(frozen=True)
class RenderSettings:
    """Parameters handed to the rendering engine."""

    concurrency: int
    gl: str
    chromium_flags: tuple[str, ...] = ()
    codec: str = "h264"
    image_format: str = "jpeg"
    jpeg_quality: int = 80
    video_bitrate: str = "5M"
    every_nth_frame: int = 1
    scale: float = 1
    enforce_audio_track: bool = False
    headless: bool = True
    ignore_certificate_errors: bool = True


# Headless containers have no GPU and a tiny /dev/shm
PRODUCTION_CHROMIUM_FLAGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
)

PROFILES: dict[RenderProfile, RenderSettings] = {
    RenderProfile.PRODUCTION: RenderSettings(
        concurrency=2,
        gl="swiftshader",
        chromium_flags=PRODUCTION_CHROMIUM_FLAGS,
    ),
    RenderProfile.DEVELOPMENT: RenderSettings(
        concurrency=8,
        gl="angle",
    ),
}

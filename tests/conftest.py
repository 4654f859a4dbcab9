"""Pytest configuration with isolated directories and fake collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from caption_studio.config.render_profiles import RenderSettings
from caption_studio.core.records import RecordStore
from caption_studio.core.storage import LocalStorage
from caption_studio.models import Composition, RenderProgress, Video, WordToken


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "asyncio: mark test as async")


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Point every configured directory at a temp dir and clear credentials."""
    dirs = {
        "config_dir": tmp_path / "config",
        "data_dir": tmp_path / "data",
        "media_dir": tmp_path / "media",
        "exports_dir": tmp_path / "exports",
    }
    monkeypatch.setenv("CAPTION_STUDIO_CONFIG_DIR", str(dirs["config_dir"]))
    monkeypatch.setenv("CAPTION_STUDIO_DATA_DIR", str(dirs["data_dir"]))
    monkeypatch.setenv("CAPTION_STUDIO_MEDIA_DIR", str(dirs["media_dir"]))
    monkeypatch.setenv("CAPTION_STUDIO_EXPORTS_DIR", str(dirs["exports_dir"]))
    monkeypatch.delenv("ASSEMBLYAI_API_KEY", raising=False)
    monkeypatch.delenv("CAPTION_STUDIO_ENV", raising=False)
    monkeypatch.delenv("NODE_ENV", raising=False)
    monkeypatch.delenv("CAPTION_STUDIO_PUBLIC_URL", raising=False)
    return dirs


@pytest.fixture
def store(isolated_dirs) -> RecordStore:
    return RecordStore(isolated_dirs["data_dir"] / "records")


@pytest.fixture
def storage(isolated_dirs) -> LocalStorage:
    return LocalStorage(isolated_dirs["media_dir"], base_url="http://testserver/media")


@pytest.fixture
def uploaded_video(store, storage) -> Video:
    """A video record whose file exists in storage."""
    storage.upload("clip.mp4", b"fake video bytes", "video/mp4")
    return store.create_video(
        Video(
            original_filename="clip.mp4",
            storage_path="clip.mp4",
            public_url=storage.get_public_url("clip.mp4"),
            file_size=16,
            mime_type="video/mp4",
        )
    )


def make_words(count: int, span_ms: int = 400, gap_ms: int = 100, start_ms: int = 0) -> list[WordToken]:
    """Evenly spaced word tokens named w1..wN."""
    words = []
    t = start_ms
    for i in range(count):
        words.append(WordToken(text=f"w{i + 1}", start=t, end=t + span_ms))
        t += span_ms + gap_ms
    return words


@pytest.fixture
def entry_point(tmp_path) -> Path:
    """A render project entry file."""
    entry = tmp_path / "remotion" / "src" / "index.ts"
    entry.parent.mkdir(parents=True)
    entry.write_text("export {};\n")
    return entry


class FakeRenderEngine:
    """In-memory render engine recording every call."""

    def __init__(self, tmp_path: Path, frames: int = 90, fail_on: str | None = None):
        self.tmp_path = tmp_path
        self.frames = frames
        self.fail_on = fail_on
        self.bundle_calls: list[Path] = []
        self.composition_calls: list[tuple[str, str, dict[str, Any]]] = []
        self.render_calls: list[dict[str, Any]] = []

    async def bundle(self, entry_point: Path) -> str:
        self.bundle_calls.append(entry_point)
        if self.fail_on == "bundle":
            raise RuntimeError("webpack exploded")
        location = self.tmp_path / f"bundle-{len(self.bundle_calls)}"
        location.mkdir(exist_ok=True)
        return str(location)

    async def select_composition(self, serve_url, composition_id, input_props) -> Composition:
        self.composition_calls.append((serve_url, composition_id, input_props))
        if self.fail_on == "composition":
            raise RuntimeError("composition crashed")
        return Composition(id=composition_id, duration_in_frames=self.frames, fps=30, width=1920, height=1080)

    async def render(
        self,
        serve_url: str,
        composition: Composition,
        input_props: dict[str, Any],
        output_path: Path,
        settings: RenderSettings,
        on_progress,
    ) -> None:
        self.render_calls.append(
            {
                "serve_url": serve_url,
                "composition": composition,
                "input_props": input_props,
                "output_path": output_path,
                "settings": settings,
            }
        )
        output_path.write_bytes(b"partial")
        for frame in range(30, composition.duration_in_frames + 1, 30):
            on_progress(
                RenderProgress(
                    progress=frame / composition.duration_in_frames * 0.5,
                    rendered_frames=frame,
                    stage="rendering",
                )
            )
        if self.fail_on == "render":
            raise RuntimeError("chrome crashed")
        on_progress(
            RenderProgress(
                progress=1.0,
                rendered_frames=composition.duration_in_frames,
                encoded_frames=composition.duration_in_frames,
                stage="encoding",
            )
        )
        output_path.write_bytes(b"rendered video")


@pytest.fixture
def fake_engine(tmp_path) -> FakeRenderEngine:
    return FakeRenderEngine(tmp_path)

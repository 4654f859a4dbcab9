"""Render orchestration: bundle, select composition, render with captions."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Callable, Sequence

from pydantic import ValidationError

from ..config import get_render_config
from ..config.render_engine import RenderEngine
from ..config.render_profiles import RenderProfile
from ..errors import CaptionStudioError, ConfigError, RenderError
from ..models import CaptionSegment, CaptionStyle, Composition, RenderProgress, RenderResult

logger = logging.getLogger(__name__)

# Render project lives next to the package: remotion/src is the editable
# source tree, remotion/dist the compiled copy shipped in images.
_PACKAGE_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_ENTRY_CANDIDATES = (
    _PACKAGE_ROOT / "remotion" / "src" / "index.ts",
    _PACKAGE_ROOT / "remotion" / "dist" / "index.js",
)


class BundleCache:
    """
    Single-slot cache for the bundled render project.

    The first render in the process fills it and later renders reuse it as
    long as the location still exists on disk. Two renders racing on a cold
    cache may both bundle; the last one to finish wins. Bundling is
    deterministic, so either location is valid. Pass strict=True to the
    orchestrator to serialize cold-start bundling instead.
    """

    def __init__(self):
        self.location: str | None = None

    def get(self) -> str | None:
        """Return the cached location if it is still on disk."""
        if self.location and Path(self.location).exists():
            return self.location
        return None

    def set(self, location: str) -> None:
        self.location = location

    def clear(self) -> None:
        self.location = None


# Process-wide cache shared by every orchestrator that doesn't bring its own
default_bundle_cache = BundleCache()


def resolve_entry_point(candidates: Sequence[Path | str] | None = None) -> Path:
    """
    Find the render project entry point.

    Args:
        candidates: Entry files in order of preference; defaults to the
            configured project_dir, then the source tree, then the compiled tree

    Returns:
        The first candidate that exists

    Raises:
        ConfigError: if none of the candidates exist
    """
    if candidates is None:
        project_dir = get_render_config()["project_dir"]
        candidates = list(DEFAULT_ENTRY_CANDIDATES)
        if project_dir:
            candidates = [Path(project_dir) / "src" / "index.ts", Path(project_dir) / "index.ts", *candidates]

    paths = [Path(c) for c in candidates]
    for path in paths:
        if path.is_file():
            return path

    searched = ", ".join(str(p) for p in paths)
    raise ConfigError(f"Render project entry point not found (searched: {searched})")


class RenderOrchestrator:
    """
    Prepares and runs caption render jobs against a render engine.

    The orchestrator does not persist anything; callers record export
    status transitions around render_with_captions().
    """

    def __init__(
        self,
        engine: RenderEngine,
        profile: RenderProfile | None = None,
        bundle_cache: BundleCache | None = None,
        entry_candidates: Sequence[Path | str] | None = None,
        composition_id: str | None = None,
        log_every_frames: int | None = None,
        strict_bundling: bool = False,
    ):
        config = get_render_config()
        self.engine = engine
        self.profile = profile or RenderProfile.from_environment()
        self.bundle_cache = bundle_cache if bundle_cache is not None else default_bundle_cache
        self.entry_candidates = entry_candidates
        self.composition_id = composition_id or config["composition_id"]
        self.log_every_frames = log_every_frames or config["log_every_frames"]
        self._bundle_lock = asyncio.Lock() if strict_bundling else None

    async def get_bundle(self) -> str:
        """Return the cached bundle location, bundling on a cold cache."""
        location = self.bundle_cache.get()
        if location:
            logger.info("Using cached render bundle")
            return location

        if self._bundle_lock is None:
            return await self._bundle()

        async with self._bundle_lock:
            return self.bundle_cache.get() or await self._bundle()

    async def _bundle(self) -> str:
        entry_point = resolve_entry_point(self.entry_candidates)
        logger.info(f"Bundling render project from {entry_point}")
        try:
            location = await self.engine.bundle(entry_point)
        except CaptionStudioError:
            raise
        except Exception as e:
            raise RenderError(f"Bundling failed: {e}") from e

        self.bundle_cache.set(location)
        logger.info(f"Render bundle cached at {location}")
        return location

    async def render_with_captions(
        self,
        video_url: str,
        captions: Sequence[CaptionSegment],
        style: CaptionStyle | str,
        output_path: str | Path,
        on_progress: Callable[[RenderProgress], None] | None = None,
    ) -> RenderResult:
        """
        Render video_url with captions burned in.

        Args:
            video_url: Source video URL reachable by the renderer
            captions: Final caption segments
            style: Caption style tag
            output_path: Where to write the rendered file
            on_progress: Optional observer receiving every progress event

        Returns:
            RenderResult with the output path, composition duration and
            wall-clock render time

        Raises:
            ConfigError: render project not found
            RenderError: bundling, composition selection or rendering failed
        """
        output_path = Path(output_path)
        style = CaptionStyle(style)
        input_props: dict[str, Any] = {
            "videoSrc": video_url,
            "captions": [c.model_dump() for c in captions],
            "style": style.value,
        }
        settings = self.profile.settings

        serve_url = await self.get_bundle()

        try:
            composition = await self.engine.select_composition(serve_url, self.composition_id, input_props)
            composition = Composition.model_validate(composition)
        except CaptionStudioError:
            raise
        except ValidationError as e:
            raise RenderError(f"Engine returned an invalid composition: {e}") from e
        except Exception as e:
            raise RenderError(f"Composition selection failed: {e}") from e

        logger.info(
            f"Composition {composition.id}: {composition.duration_in_frames} frames, "
            f"{composition.width}x{composition.height}, {len(captions)} captions, style {style.value}"
        )

        output_path.parent.mkdir(parents=True, exist_ok=True)
        tracker = _ProgressTracker(composition.duration_in_frames, self.log_every_frames, on_progress)

        logger.info(f"Rendering with {self.profile.value} profile (concurrency {settings.concurrency}, gl {settings.gl})")
        started = time.monotonic()
        rendered = False
        try:
            await self.engine.render(serve_url, composition, input_props, output_path, settings, tracker)
            rendered = True
        except CaptionStudioError:
            raise
        except Exception as e:
            raise RenderError(f"Render failed: {e}") from e
        finally:
            # Also covers cancellation
            if not rendered:
                output_path.unlink(missing_ok=True)
        render_seconds = time.monotonic() - started

        if not output_path.exists():
            raise RenderError(f"Renderer finished but produced no file at {output_path}")

        logger.info(f"Video rendered in {render_seconds:.1f}s: {output_path}")
        return RenderResult(
            output_path=str(output_path),
            duration_seconds=composition.duration_seconds,
            render_seconds=render_seconds,
        )


class _ProgressTracker:
    """Clamps progress to be non-decreasing, logs throttled, forwards everything."""

    def __init__(
        self,
        total_frames: int,
        log_every_frames: int,
        observer: Callable[[RenderProgress], None] | None,
    ):
        self.total_frames = total_frames
        self.log_every_frames = log_every_frames
        self.observer = observer
        self.progress = 0.0

    def __call__(self, event: RenderProgress) -> None:
        if event.progress < self.progress:
            event = event.model_copy(update={"progress": self.progress})
        self.progress = event.progress

        if event.rendered_frames % self.log_every_frames == 0 or event.progress >= 1:
            label = "Encoding" if event.stage == "encoding" else "Rendering"
            logger.info(
                f"{label}: {event.progress * 100:.1f}% "
                f"({event.rendered_frames}/{self.total_frames} frames)"
            )

        if self.observer is not None:
            self.observer(event)

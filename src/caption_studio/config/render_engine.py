"""
Render engine configuration - the external compositing engine we drive.

This is "code as configuration" - modify this file to point at a different
engine or to change how the Remotion CLI is invoked.
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Protocol

from pydantic import ValidationError

from ..errors import RenderError
from ..models import Composition, RenderProgress
from .render_profiles import RenderSettings

ProgressCallback = Callable[[RenderProgress], None]


class RenderEngine(Protocol):
    """The three calls the render orchestrator needs from an engine."""

    async def bundle(self, entry_point: Path) -> str:
        """Bundle the render project and return a serveable location."""
        ...

    async def select_composition(
        self,
        serve_url: str,
        composition_id: str,
        input_props: dict[str, Any],
    ) -> Composition:
        """Resolve the concrete composition for the given input props."""
        ...

    async def render(
        self,
        serve_url: str,
        composition: Composition,
        input_props: dict[str, Any],
        output_path: Path,
        settings: RenderSettings,
        on_progress: ProgressCallback,
    ) -> None:
        """Render the composition to output_path."""
        ...


# "VideoWithCaptions    30    1920x1080    3000 (100.00 sec)"
_COMPOSITION_LINE = re.compile(
    r"^(?P<id>[\w-]+)\s+(?P<fps>\d+(?:\.\d+)?)\s+(?P<width>\d+)x(?P<height>\d+)\s+(?P<frames>\d+)"
)
# "Rendered 30/3000", "Encoded 30/3000"
_PROGRESS_LINE = re.compile(r"(?P<stage>Render|Encod)\w*\D*?(?P<done>\d+)\s*/\s*(?P<total>\d+)", re.IGNORECASE)
_OUTPUT_TAIL_CHARS = 2000


def parse_compositions(output: str) -> list[Composition]:
    """
    Parse the table printed by `remotion compositions`.

    Args:
        output: CLI stdout

    Returns:
        List of compositions found in the output
    """
    compositions = []
    for line in output.splitlines():
        match = _COMPOSITION_LINE.match(line.strip())
        if not match:
            continue
        try:
            compositions.append(
                Composition(
                    id=match["id"],
                    fps=float(match["fps"]),
                    width=int(match["width"]),
                    height=int(match["height"]),
                    duration_in_frames=int(match["frames"]),
                )
            )
        except ValidationError:
            continue
    return compositions


class _ProgressParser:
    """Turns CLI progress lines into RenderProgress events."""

    def __init__(self, total_frames: int):
        self.total_frames = max(total_frames, 1)
        self.rendered = 0
        self.encoded = 0

    def feed(self, line: str) -> RenderProgress | None:
        match = _PROGRESS_LINE.search(line)
        if not match:
            return None
        done = int(match["done"])
        total = int(match["total"]) or self.total_frames
        self.total_frames = total
        if match["stage"].lower().startswith("render"):
            self.rendered = max(self.rendered, done)
            stage = "rendering"
        else:
            self.encoded = max(self.encoded, done)
            stage = "encoding"
        # Rendering and encoding each account for half of the work
        progress = min((self.rendered + self.encoded) / (2 * total), 1.0)
        return RenderProgress(
            progress=progress,
            rendered_frames=self.rendered,
            encoded_frames=self.encoded,
            stage=stage,
        )


class RemotionCliEngine:
    """
    Drives Remotion through its CLI (`npx remotion ...`).

    Input props are passed through a temporary JSON file so large caption
    lists don't hit argv limits.
    """

    def __init__(self, command: list[str] | None = None, cwd: Path | None = None):
        self.command = list(command or ["npx", "remotion"])
        self.cwd = cwd

    async def bundle(self, entry_point: Path) -> str:
        out_dir = tempfile.mkdtemp(prefix="caption-studio-bundle-")
        try:
            await self._run(["bundle", str(entry_point), "--out-dir", out_dir], cwd=self.cwd or entry_point.parent)
        except BaseException:
            shutil.rmtree(out_dir, ignore_errors=True)
            raise
        return out_dir

    async def select_composition(
        self,
        serve_url: str,
        composition_id: str,
        input_props: dict[str, Any],
    ) -> Composition:
        with _props_file(input_props) as props_path:
            output = await self._run(["compositions", serve_url, f"--props={props_path}"])

        for composition in parse_compositions(output):
            if composition.id == composition_id:
                return composition
        raise RenderError(f"Composition '{composition_id}' not found in bundle {serve_url}")

    async def render(
        self,
        serve_url: str,
        composition: Composition,
        input_props: dict[str, Any],
        output_path: Path,
        settings: RenderSettings,
        on_progress: ProgressCallback,
    ) -> None:
        parser = _ProgressParser(composition.duration_in_frames)

        def on_line(line: str) -> None:
            event = parser.feed(line)
            if event is not None:
                on_progress(event)

        env = None
        if settings.chromium_flags:
            env = {**os.environ, "CHROMIUM_FLAGS": " ".join(settings.chromium_flags)}

        with _props_file(input_props) as props_path:
            args = [
                "render",
                serve_url,
                composition.id,
                str(output_path),
                f"--props={props_path}",
                *render_flags(settings),
            ]
            await self._run(args, env=env, on_line=on_line)

        on_progress(
            RenderProgress(
                progress=1.0,
                rendered_frames=parser.total_frames,
                encoded_frames=parser.total_frames,
                stage="encoding",
            )
        )

    async def _run(
        self,
        args: list[str],
        env: dict[str, str] | None = None,
        cwd: Path | None = None,
        on_line: Callable[[str], None] | None = None,
    ) -> str:
        """Run a CLI subcommand, streaming its output line by line."""
        cmd = [*self.command, *args]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=env,
                cwd=str(cwd or self.cwd) if (cwd or self.cwd) else None,
            )
        except FileNotFoundError as e:
            raise RenderError(f"Render engine not installed ({cmd[0]}): {e}") from e

        assert proc.stdout is not None
        chunks: list[str] = []
        pending = ""
        while True:
            data = await proc.stdout.read(4096)
            if not data:
                break
            text = data.decode(errors="replace")
            chunks.append(text)
            # Progress bars rewrite the line with \r
            parts = re.split(r"[\r\n]", pending + text)
            pending = parts.pop()
            if on_line:
                for part in parts:
                    if part.strip():
                        on_line(part)
        if pending.strip() and on_line:
            on_line(pending)

        returncode = await proc.wait()
        output = "".join(chunks)
        if returncode != 0:
            tail = output[-_OUTPUT_TAIL_CHARS:].strip()
            raise RenderError(f"remotion {args[0]} exited with code {returncode}: {tail}")
        return output


def render_flags(settings: RenderSettings) -> list[str]:
    """Translate render settings into Remotion CLI flags."""
    flags = [
        f"--codec={settings.codec}",
        f"--concurrency={settings.concurrency}",
        f"--image-format={settings.image_format}",
        f"--jpeg-quality={settings.jpeg_quality}",
        f"--video-bitrate={settings.video_bitrate}",
        f"--every-nth-frame={settings.every_nth_frame}",
        f"--scale={settings.scale}",
        f"--gl={settings.gl}",
    ]
    if settings.ignore_certificate_errors:
        flags.append("--ignore-certificate-errors")
    if settings.enforce_audio_track:
        flags.append("--enforce-audio-track")
    return flags


@contextmanager
def _props_file(props: dict[str, Any]) -> Iterator[Path]:
    """Write input props to a temporary JSON file for the CLI."""
    fd, path = tempfile.mkstemp(suffix=".json", prefix="caption-studio-props-")
    with os.fdopen(fd, "w") as f:
        json.dump(props, f, ensure_ascii=False)
    try:
        yield Path(path)
    finally:
        Path(path).unlink(missing_ok=True)

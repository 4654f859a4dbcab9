"""
AssemblyAI speech-to-text integration.

Uploads local media, submits a transcript job and polls it until the
provider reports a terminal state, then converts the word timestamps into
caption segments.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

import httpx
from pydantic import ValidationError

from ..config import get_assemblyai_api_key, get_transcription_config
from ..errors import AuthError, ConfigError, MediaIOError, TranscriptionError
from ..models import TranscriptionJob, TranscriptionResult, TranscriptStatus
from .segments import DEFAULT_WINDOW_SIZE, build_segments

logger = logging.getLogger(__name__)

# Provider vocabulary -> internal status
_STATUS_ALIASES = {
    "queued": TranscriptStatus.QUEUED,
    "processing": TranscriptStatus.PROCESSING,
    "in_progress": TranscriptStatus.PROCESSING,
    "completed": TranscriptStatus.COMPLETED,
    "error": TranscriptStatus.ERROR,
    "failed": TranscriptStatus.ERROR,
}


def parse_transcript(payload: Any) -> TranscriptionJob:
    """
    Validate a provider transcript payload.

    Args:
        payload: Decoded JSON from the poll endpoint

    Returns:
        TranscriptionJob with a normalized status

    Raises:
        TranscriptionError: if the payload is malformed or has an unknown status
    """
    if not isinstance(payload, dict):
        raise TranscriptionError(f"Malformed transcript response: expected object, got {type(payload).__name__}")

    raw_status = str(payload.get("status", "")).lower()
    status = _STATUS_ALIASES.get(raw_status)
    if status is None:
        raise TranscriptionError(f"Unknown transcript status: {payload.get('status')!r}")

    try:
        return TranscriptionJob.model_validate({**payload, "status": status})
    except ValidationError as e:
        raise TranscriptionError(f"Malformed transcript response: {e}") from e


class TranscriptionClient:
    """
    Client for an AssemblyAI-compatible transcription API.

    The client never touches persistence: callers record video status
    transitions around transcribe().
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        poll_interval: float | None = None,
        max_wait: float | None = None,
        speech_model: str | None = None,
        window_size: int = DEFAULT_WINDOW_SIZE,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        config = get_transcription_config()
        self._api_key = api_key
        self.base_url = (base_url or config["base_url"]).rstrip("/")
        self.poll_interval = poll_interval if poll_interval is not None else config["poll_interval"]
        self.max_wait = max_wait if max_wait is not None else config["max_wait_seconds"]
        self.speech_model = speech_model or config["speech_model"]
        self.window_size = window_size
        self._http_client = http_client
        self._sleep = sleep

    def _resolve_api_key(self) -> str:
        api_key = self._api_key or get_assemblyai_api_key()
        if not api_key:
            raise ConfigError("ASSEMBLYAI_API_KEY is not set in environment variables or config.json")
        return api_key

    async def transcribe(self, media_path: str | Path, language: str | None = None) -> TranscriptionResult:
        """
        Transcribe a local media file into caption segments.

        Args:
            media_path: Local audio/video file
            language: Language code hint; None lets the provider detect it

        Returns:
            TranscriptionResult with captions, language and duration

        Raises:
            ConfigError: API key missing
            AuthError: API key rejected (401/403)
            MediaIOError: media file unreadable
            TranscriptionError: provider failure or transport error
        """
        api_key = self._resolve_api_key()
        payload = await _read_media(Path(media_path))

        headers = {"authorization": api_key}
        if self._http_client is not None:
            job = await self._run_job(self._http_client, headers, payload, language)
        else:
            async with httpx.AsyncClient(timeout=None) as client:
                job = await self._run_job(client, headers, payload, language)

        return self._to_result(job, language)

    async def _run_job(
        self,
        client: httpx.AsyncClient,
        headers: dict[str, str],
        payload: bytes,
        language: str | None,
    ) -> TranscriptionJob:
        logger.info(f"Uploading {len(payload) / 1024 / 1024:.2f} MB to transcription provider")
        upload = await self._request(client, "POST", "/v2/upload", headers=headers, content=payload)
        upload_url = upload.get("upload_url")
        if not upload_url:
            raise TranscriptionError("Upload response did not include an upload_url")

        body: dict[str, Any] = {"audio_url": upload_url, "speech_model": self.speech_model}
        if language:
            body["language_code"] = language
        else:
            body["language_detection"] = True

        submitted = await self._request(client, "POST", "/v2/transcript", headers=headers, json=body)
        job_id = submitted.get("id")
        if not job_id:
            raise TranscriptionError("Submit response did not include a transcript id")

        logger.info(f"Transcript {job_id} submitted (language: {language or 'auto-detect'})")
        return await self._poll(client, headers, str(job_id))

    async def _poll(self, client: httpx.AsyncClient, headers: dict[str, str], job_id: str) -> TranscriptionJob:
        """Poll the transcript until it completes or errors."""
        started = time.monotonic()
        while True:
            job = parse_transcript(await self._request(client, "GET", f"/v2/transcript/{job_id}", headers=headers))

            if job.status == TranscriptStatus.COMPLETED:
                logger.info(f"Transcript {job_id} completed")
                return job
            if job.status == TranscriptStatus.ERROR:
                raise TranscriptionError(f"Transcription failed: {job.error or 'unknown provider error'}")

            if self.max_wait is not None and time.monotonic() - started >= self.max_wait:
                raise TranscriptionError(f"Transcript {job_id} still {job.status.value} after {self.max_wait}s")

            logger.debug(f"Transcript {job_id} status: {job.status.value}")
            await self._sleep(self.poll_interval)

    async def _request(self, client: httpx.AsyncClient, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Failed to connect to transcription provider: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError("Invalid AssemblyAI API key. Check ASSEMBLYAI_API_KEY")

        data = _json_or_none(response)
        if response.status_code >= 400:
            detail = data.get("error") if isinstance(data, dict) else None
            raise TranscriptionError(detail or f"Provider returned {response.status_code}: {response.text[:300]}")
        if not isinstance(data, dict):
            raise TranscriptionError(f"Malformed provider response from {path}")
        return data

    def _to_result(self, job: TranscriptionJob, language: str | None) -> TranscriptionResult:
        duration = job.audio_duration or 0
        try:
            if job.words:
                captions = build_segments(job.words, self.window_size)
            else:
                captions = build_segments([], duration=duration, text=job.text)
        except ValidationError as e:
            raise TranscriptionError(f"Malformed transcript response: {e}") from e

        logger.info(f"Generated {len(captions)} caption segments")
        return TranscriptionResult(
            captions=captions,
            language=job.language_code or language or "unknown",
            duration=duration,
        )


async def _read_media(path: Path) -> bytes:
    try:
        return await asyncio.to_thread(path.read_bytes)
    except FileNotFoundError as e:
        raise MediaIOError(f"Video file not found: {path}", code="file_not_found") from e
    except OSError as e:
        raise MediaIOError(f"Failed to read media {path}: {e}") from e


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None

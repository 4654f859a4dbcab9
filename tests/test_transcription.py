"""Tests for the transcription client against a mocked provider."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest

from caption_studio.core.transcription import TranscriptionClient, parse_transcript
from caption_studio.errors import AuthError, ConfigError, MediaIOError, TranscriptionError
from caption_studio.models import TranscriptStatus

from conftest import make_words

BASE_URL = "https://stt.test"


class FakeProvider:
    """Mock AssemblyAI endpoints; poll responses are served in order."""

    def __init__(self, poll_responses: list[dict], upload_status: int = 200):
        self.poll_responses = list(poll_responses)
        self.upload_status = upload_status
        self.polls = 0
        self.uploaded: bytes | None = None
        self.submitted: dict | None = None
        self.auth_headers: list[str | None] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.auth_headers.append(request.headers.get("authorization"))
        path = request.url.path

        if request.method == "POST" and path == "/v2/upload":
            if self.upload_status != 200:
                return httpx.Response(self.upload_status, json={"error": "Authentication error"})
            self.uploaded = request.content
            return httpx.Response(200, json={"upload_url": "https://cdn.stt.test/abc"})

        if request.method == "POST" and path == "/v2/transcript":
            self.submitted = json.loads(request.content)
            return httpx.Response(200, json={"id": "tx-1", "status": "queued"})

        if request.method == "GET" and path == "/v2/transcript/tx-1":
            response = self.poll_responses[min(self.polls, len(self.poll_responses) - 1)]
            self.polls += 1
            return httpx.Response(200, json=response)

        return httpx.Response(404, json={"error": f"unexpected {request.method} {path}"})


def completed(words: list[dict] | None, **extra) -> dict:
    return {"id": "tx-1", "status": "completed", "words": words, **extra}


def word_dicts(count: int) -> list[dict]:
    return [w.model_dump() for w in make_words(count)]


@pytest.fixture
def media_file(tmp_path) -> Path:
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00\x01fake media")
    return path


def make_client(provider: FakeProvider, sleep=None, **kwargs) -> TranscriptionClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(provider.handler))
    return TranscriptionClient(
        api_key="test-key",
        base_url=BASE_URL,
        http_client=http_client,
        sleep=sleep or AsyncMock(),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_transcribe_completed_with_words(media_file):
    """Test 25 words with the default window give 3 segments, the last with 5 words."""
    provider = FakeProvider([completed(word_dicts(25), language_code="en_us", audio_duration=12.5)])
    client = make_client(provider)

    result = await client.transcribe(media_file)

    assert [c.id for c in result.captions] == [1, 2, 3]
    assert len(result.captions[2].text.split()) == 5
    assert result.language == "en_us"
    assert result.duration == 12.5
    assert provider.uploaded == b"\x00\x01fake media"
    assert all(h == "test-key" for h in provider.auth_headers)


@pytest.mark.asyncio
async def test_polls_every_interval_until_completed(media_file):
    """Test queued/processing responses sleep for the poll interval between checks."""
    provider = FakeProvider(
        [
            {"id": "tx-1", "status": "queued"},
            {"id": "tx-1", "status": "processing"},
            completed(word_dicts(3)),
        ]
    )
    sleep = AsyncMock()
    client = make_client(provider, sleep=sleep, poll_interval=3.0)

    result = await client.transcribe(media_file, "en")

    assert provider.polls == 3
    assert sleep.await_count == 2
    sleep.assert_awaited_with(3.0)
    assert len(result.captions) == 1


@pytest.mark.asyncio
async def test_error_status_raises_and_stops_polling(media_file):
    """Test a provider error fails with TranscriptionError and no further polls."""
    provider = FakeProvider(
        [
            {"id": "tx-1", "status": "processing"},
            {"id": "tx-1", "status": "error", "error": "Audio file is corrupt"},
            completed(word_dicts(3)),
        ]
    )
    client = make_client(provider)

    with pytest.raises(TranscriptionError, match="Audio file is corrupt"):
        await client.transcribe(media_file)

    assert provider.polls == 2


@pytest.mark.asyncio
async def test_language_hint_sent_to_provider(media_file):
    provider = FakeProvider([completed(word_dicts(2))])
    client = make_client(provider)

    result = await client.transcribe(media_file, "hi")

    assert provider.submitted["language_code"] == "hi"
    assert provider.submitted["audio_url"] == "https://cdn.stt.test/abc"
    assert "language_detection" not in provider.submitted
    # Provider reported no language: fall back to the hint
    assert result.language == "hi"


@pytest.mark.asyncio
async def test_no_hint_requests_language_detection(media_file):
    provider = FakeProvider([completed(word_dicts(2))])
    client = make_client(provider)

    result = await client.transcribe(media_file)

    assert provider.submitted["language_detection"] is True
    assert "language_code" not in provider.submitted
    assert result.language == "unknown"


@pytest.mark.asyncio
async def test_missing_words_falls_back_to_full_text(media_file):
    """Test a completed job without words gives one segment from text/duration."""
    provider = FakeProvider([completed(None, text="hello world", audio_duration=7.0)])
    client = make_client(provider)

    result = await client.transcribe(media_file)

    assert len(result.captions) == 1
    assert result.captions[0].start == 0
    assert result.captions[0].end == 7.0
    assert result.captions[0].text == "hello world"


@pytest.mark.asyncio
async def test_missing_api_key_raises_config_error(media_file):
    provider = FakeProvider([completed(word_dicts(2))])
    client = TranscriptionClient(
        base_url=BASE_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(provider.handler)),
    )

    with pytest.raises(ConfigError):
        await client.transcribe(media_file)

    assert provider.auth_headers == []


@pytest.mark.asyncio
async def test_api_key_read_from_environment(media_file, monkeypatch):
    monkeypatch.setenv("ASSEMBLYAI_API_KEY", "env-key")
    provider = FakeProvider([completed(word_dicts(2))])
    client = TranscriptionClient(
        base_url=BASE_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(provider.handler)),
    )

    await client.transcribe(media_file)

    assert provider.auth_headers[0] == "env-key"


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 403])
async def test_rejected_key_raises_auth_error(media_file, status_code):
    provider = FakeProvider([], upload_status=status_code)
    client = make_client(provider)

    with pytest.raises(AuthError):
        await client.transcribe(media_file)


@pytest.mark.asyncio
async def test_missing_media_raises_file_not_found(tmp_path):
    provider = FakeProvider([completed(word_dicts(2))])
    client = make_client(provider)

    with pytest.raises(MediaIOError) as exc_info:
        await client.transcribe(tmp_path / "missing.mp4")

    assert exc_info.value.code == "file_not_found"
    assert provider.uploaded is None


@pytest.mark.asyncio
async def test_transport_error_raises_transcription_error(media_file):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection reset", request=request)

    client = TranscriptionClient(
        api_key="test-key",
        base_url=BASE_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )

    with pytest.raises(TranscriptionError, match="connect"):
        await client.transcribe(media_file)


@pytest.mark.asyncio
async def test_provider_http_error_passes_message_through(media_file):
    provider = FakeProvider([], upload_status=500)
    client = make_client(provider)

    with pytest.raises(TranscriptionError, match="Authentication error"):
        await client.transcribe(media_file)


@pytest.mark.asyncio
async def test_max_wait_bounds_polling(media_file):
    """Test the optional max_wait guard stops a job that never finishes."""
    provider = FakeProvider([{"id": "tx-1", "status": "processing"}])
    client = make_client(provider, max_wait=0)

    with pytest.raises(TranscriptionError, match="still processing"):
        await client.transcribe(media_file)

    assert provider.polls == 1


@pytest.mark.asyncio
async def test_malformed_words_rejected(media_file):
    provider = FakeProvider([completed([{"text": "hi", "start": "soon"}])])
    client = make_client(provider)

    with pytest.raises(TranscriptionError, match="Malformed"):
        await client.transcribe(media_file)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "word",
    [
        {"text": "hi", "start": 900, "end": 100},
        {"text": "hi", "start": -50, "end": 100},
    ],
)
async def test_bad_word_timestamps_rejected(media_file, word):
    provider = FakeProvider([completed([word])])
    client = make_client(provider)

    with pytest.raises(TranscriptionError, match="Malformed transcript response"):
        await client.transcribe(media_file)


@pytest.mark.asyncio
async def test_out_of_order_words_rejected(media_file):
    words = [{"text": "late", "start": 900, "end": 1000}, {"text": "early", "start": 0, "end": 100}]
    provider = FakeProvider([completed(words)])
    client = make_client(provider)

    with pytest.raises(TranscriptionError, match="Malformed transcript response"):
        await client.transcribe(media_file)


@pytest.mark.asyncio
async def test_negative_duration_fallback_rejected(media_file):
    provider = FakeProvider([completed(None, text="hello", audio_duration=-1.0)])
    client = make_client(provider)

    with pytest.raises(TranscriptionError, match="Malformed transcript response"):
        await client.transcribe(media_file)


class TestParseTranscript:
    """Test parse_transcript boundary validation."""

    def test_normalizes_status(self):
        job = parse_transcript({"id": "a", "status": "Processing"})
        assert job.status == TranscriptStatus.PROCESSING

    def test_unknown_status_rejected(self):
        with pytest.raises(TranscriptionError, match="Unknown transcript status"):
            parse_transcript({"id": "a", "status": "paused"})

    def test_non_object_rejected(self):
        with pytest.raises(TranscriptionError):
            parse_transcript(["not", "a", "dict"])

    def test_ignores_extra_provider_fields(self):
        job = parse_transcript(
            {
                "id": "a",
                "status": "completed",
                "words": [{"text": "hi", "start": 0, "end": 10, "confidence": 0.9, "speaker": None}],
                "acoustic_model": "assemblyai_default",
            }
        )
        assert job.words[0].text == "hi"

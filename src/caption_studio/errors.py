"""Error taxonomy for caption-studio.

Every error carries a human-readable message and a machine ``code`` that
the API layer maps to an HTTP status. None of these are retried internally.
"""

from __future__ import annotations


class CaptionStudioError(Exception):
    """Base class for all classified failures."""

    code = "error"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        return {"success": False, "error": self.code, "message": self.message}


class ConfigError(CaptionStudioError):
    """Missing or invalid static configuration."""

    code = "config_error"


class AuthError(CaptionStudioError):
    """A provider rejected our credential."""

    code = "auth_error"


class MediaIOError(CaptionStudioError):
    """Local media could not be read or written."""

    code = "io_error"


class TranscriptionError(CaptionStudioError):
    """The speech-to-text provider reported a failure."""

    code = "transcription_error"


class RenderError(CaptionStudioError):
    """Bundling, composition selection or rendering failed."""

    code = "render_error"


class NotFoundError(CaptionStudioError):
    """A referenced video, caption set or export does not exist."""

    code = "not_found"


class InvalidInputError(CaptionStudioError):
    """Caller-supplied captions, style or ids failed validation."""

    code = "invalid_input"

"""Basic settings and directory management."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir, user_data_dir


def get_config_dir() -> Path:
    """Get the configuration directory."""
    return Path(os.environ.get("CAPTION_STUDIO_CONFIG_DIR", user_config_dir("caption-studio")))


def get_data_dir() -> Path:
    """Get the data directory for lifecycle records."""
    return Path(os.environ.get("CAPTION_STUDIO_DATA_DIR", user_data_dir("caption-studio")))


def get_media_dir() -> Path:
    """Get the object storage root for uploaded videos."""
    default = get_data_dir() / "media"
    return Path(os.environ.get("CAPTION_STUDIO_MEDIA_DIR", str(default)))


def get_exports_dir() -> Path:
    """Get the directory rendered videos are written to."""
    default = get_data_dir() / "exports"
    return Path(os.environ.get("CAPTION_STUDIO_EXPORTS_DIR", str(default)))


def get_records_dir() -> Path:
    """Get the directory holding video/caption/export records."""
    return get_data_dir() / "records"


def get_config_file() -> Path:
    """Get the config file path."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from file."""
    config: dict[str, Any] = {}
    config_file = get_config_file()
    if config_file.exists():
        with open(config_file) as f:
            config = json.load(f)
    return config


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        json.dump(config, f, indent=2)


def ensure_dirs() -> None:
    """Ensure all required directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
    get_media_dir().mkdir(parents=True, exist_ok=True)
    get_exports_dir().mkdir(parents=True, exist_ok=True)
    for table in ("videos", "captions", "exports"):
        (get_records_dir() / table).mkdir(parents=True, exist_ok=True)


def get_assemblyai_api_key() -> str | None:
    """Get the AssemblyAI API key from the environment or config file."""
    key = os.environ.get("ASSEMBLYAI_API_KEY")
    if key:
        return key
    return load_config().get("assemblyai_api_key") or None


def is_production() -> bool:
    """Whether we are deployed in production (selects the render profile)."""
    env = os.environ.get("CAPTION_STUDIO_ENV") or os.environ.get("NODE_ENV") or ""
    return env.strip().lower() == "production"


def get_public_base_url() -> str:
    """Get the base URL media and exports are served from."""
    return os.environ.get("CAPTION_STUDIO_PUBLIC_URL", "http://localhost:8000").rstrip("/")


# Transcription configuration
DEFAULT_TRANSCRIPTION_CONFIG = {
    "base_url": "https://api.assemblyai.com",
    "poll_interval": 3.0,
    "max_wait_seconds": None,  # None = poll until the provider reaches a terminal state
    "speech_model": "universal",
}


def get_transcription_config() -> dict[str, Any]:
    """Get transcription configuration with defaults."""
    config = load_config()
    transcription = config.get("transcription", {})
    return {**DEFAULT_TRANSCRIPTION_CONFIG, **transcription}


# Render configuration
DEFAULT_RENDER_CONFIG = {
    "composition_id": "VideoWithCaptions",
    "project_dir": None,
    "remotion_command": ["npx", "remotion"],
    "log_every_frames": 30,
}


def get_render_config() -> dict[str, Any]:
    """Get render configuration with defaults."""
    config = load_config()
    render = config.get("render", {})
    return {**DEFAULT_RENDER_CONFIG, **render}


# Cleanup configuration
DEFAULT_CLEANUP_CONFIG = {
    "enabled": True,
    "retention_days": 1,
    "schedule": "0 */6 * * *",  # Every 6 hours
}


def get_cleanup_config() -> dict[str, Any]:
    """Get cleanup configuration with defaults."""
    config = load_config()
    cleanup = config.get("cleanup", {})
    return {**DEFAULT_CLEANUP_CONFIG, **cleanup}

"""Configuration module for caption-studio."""

from .settings import (
    ensure_dirs,
    get_assemblyai_api_key,
    get_cleanup_config,
    get_config_dir,
    get_config_file,
    get_data_dir,
    get_exports_dir,
    get_media_dir,
    get_public_base_url,
    get_records_dir,
    get_render_config,
    get_transcription_config,
    is_production,
    load_config,
    save_config,
)
from .render_profiles import PROFILES, RenderProfile, RenderSettings

__all__ = [
    "ensure_dirs",
    "get_assemblyai_api_key",
    "get_cleanup_config",
    "get_config_dir",
    "get_config_file",
    "get_data_dir",
    "get_exports_dir",
    "get_media_dir",
    "get_public_base_url",
    "get_records_dir",
    "get_render_config",
    "get_transcription_config",
    "is_production",
    "load_config",
    "save_config",
    # Render profiles
    "PROFILES",
    "RenderProfile",
    "RenderSettings",
]

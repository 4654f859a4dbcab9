"""Cleanup of expired rendered exports."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

from ..config import get_exports_dir
from ..models import ExportStatus
from .records import RecordStore

logger = logging.getLogger(__name__)

_IN_PROGRESS = (ExportStatus.QUEUED, ExportStatus.RENDERING)


def get_file_age_days(path: Path) -> float | None:
    """
    Get file age in days from its mtime.

    Args:
        path: File to check

    Returns:
        Age in days, or None if the file is inaccessible
    """
    try:
        age_seconds = time.time() - path.stat().st_mtime
        return age_seconds / 86400.0
    except OSError as e:
        logger.warning(f"Failed to get age for {path}: {e}")
        return None


def _in_progress_outputs(store: RecordStore) -> set[str]:
    """File names of exports that are still queued or rendering."""
    names = set()
    for export in store.list_exports():
        if export.status in _IN_PROGRESS and export.output_path:
            names.add(Path(export.output_path).name)
    return names


def cleanup_expired_exports(
    retention_days: float,
    exports_dir: Path | None = None,
    store: RecordStore | None = None,
) -> dict[str, Any]:
    """
    Delete rendered files older than the retention period.

    Files belonging to exports that are still queued or rendering are kept.
    Export records are left in place; their output file simply disappears.

    Args:
        retention_days: Files older than this many days are deleted
        exports_dir: Directory to scan (defaults to the exports dir)
        store: Record store used to find in-progress exports

    Returns:
        {
            "success": True,
            "deleted_count": 3,
            "freed_bytes": 123456789,
            "skipped_rendering": 1,
            "errors": [],
            "details": [...]
        }
    """
    exports_dir = Path(exports_dir) if exports_dir is not None else get_exports_dir()
    store = store or RecordStore()

    result: dict[str, Any] = {
        "success": True,
        "deleted_count": 0,
        "freed_bytes": 0,
        "skipped_rendering": 0,
        "errors": [],
        "details": [],
    }

    if not exports_dir.exists():
        logger.info(f"Exports directory does not exist: {exports_dir}")
        return result

    protected = _in_progress_outputs(store)

    for path in exports_dir.iterdir():
        if not path.is_file():
            continue

        age_days = get_file_age_days(path)
        if age_days is None:
            continue
        if age_days <= retention_days:
            logger.debug(f"Skipped {path.name}: age {age_days:.2f} days <= retention {retention_days} days")
            continue

        if path.name in protected:
            logger.info(f"Skipped {path.name}: export still rendering")
            result["skipped_rendering"] += 1
            continue

        try:
            size = path.stat().st_size
            path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete {path}: {e}")
            result["errors"].append({"file": path.name, "error": str(e)})
            continue

        logger.info(f"Deleted {path.name}: age {age_days:.2f} days")
        result["deleted_count"] += 1
        result["freed_bytes"] += size
        result["details"].append({"file": path.name, "age_days": round(age_days, 2), "size_bytes": size})

    return result

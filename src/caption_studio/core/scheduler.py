"""APScheduler wrapper that periodically removes expired exports."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config import get_cleanup_config
from .cleanup import cleanup_expired_exports

logger = logging.getLogger(__name__)

JOB_ID = "cleanup_expired_exports"


def _parse_schedule(schedule: str) -> CronTrigger | None:
    try:
        return CronTrigger.from_crontab(schedule)
    except ValueError as e:
        logger.error(f"Invalid cron expression '{schedule}': {e}")
        return None


async def run_cleanup() -> dict[str, Any]:
    """Run a cleanup pass now with the configured retention."""
    retention_days = get_cleanup_config()["retention_days"]
    logger.info(f"Cleaning up exports older than {retention_days} days")

    # Unlinking files blocks
    result = await asyncio.to_thread(cleanup_expired_exports, retention_days)

    freed_mb = result["freed_bytes"] / 1024 / 1024
    logger.info(f"Export cleanup done: {result['deleted_count']} files deleted, {freed_mb:.2f} MB freed")
    if result["skipped_rendering"]:
        logger.info(f"Kept {result['skipped_rendering']} expired files whose exports are still rendering")
    for error in result["errors"]:
        logger.warning(f"Could not delete {error['file']}: {error['error']}")
    return result


class CleanupScheduler:
    """
    Runs cleanup_expired_exports on the cron schedule from the cleanup config.

    The config is read on start() and again on every run, so a changed
    retention period applies from the next run without a restart.
    """

    def __init__(self):
        self.scheduler = AsyncIOScheduler()

    @property
    def next_run_time(self) -> datetime | None:
        job = self.scheduler.get_job(JOB_ID) if self.scheduler.running else None
        return job.next_run_time if job else None

    async def start(self):
        config = get_cleanup_config()
        if not config["enabled"]:
            logger.info("Export cleanup disabled in config")
            return

        trigger = _parse_schedule(config["schedule"])
        if trigger is None:
            return

        self.scheduler.add_job(
            self._scheduled_run,
            trigger=trigger,
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.start()
        logger.info(f"Export cleanup scheduled ({config['schedule']}), next run: {self.next_run_time}")

    async def _scheduled_run(self):
        try:
            await run_cleanup()
        except Exception as e:
            logger.error(f"Scheduled export cleanup failed: {e}", exc_info=True)

    async def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            logger.info("Export cleanup scheduler stopped")

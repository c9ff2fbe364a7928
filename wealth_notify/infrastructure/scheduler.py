"""Time-driven notification jobs (expiry cleanup and digests) on APScheduler."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TypeVar

from anyio import to_thread
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from wealth_notify.application.use_cases.notifications import (
    DigestComposer,
    DigestRunSummary,
    cleanup_expired_notifications,
    send_notification_digests,
)
from wealth_notify.config import get_settings
from wealth_notify.infrastructure.channels import EmailDigestComposer
from wealth_notify.infrastructure.database import SessionLocal
from wealth_notify.infrastructure.directory import UserDirectory
from wealth_notify.utils import get_app_timezone, parse_clock_time

logger = logging.getLogger(__name__)

CLEANUP_JOB_ID = "notification-cleanup"
DIGEST_JOB_ID = "notification-digests"

T = TypeVar("T")


def build_email_digest_composer(session: Session) -> DigestComposer:
    directory = UserDirectory(session)
    return EmailDigestComposer(directory.email_for, directory.display_name_for)


class NotificationScheduler:
    """Own the cron jobs that keep notifications tidy and send digests.

    Only one run of a job may be in progress: a trigger that fires while the
    previous run holds the job lock is skipped, never queued. This assumes a
    single scheduler per deployment.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
        composer_factory: Callable[[Session], DigestComposer] = build_email_digest_composer,
        cleanup_time: str | None = None,
        digest_time: str | None = None,
    ) -> None:
        settings = get_settings()
        self._session_factory = session_factory
        self._composer_factory = composer_factory
        self._cleanup_time = parse_clock_time(cleanup_time or settings.cleanup_time)
        self._digest_time = parse_clock_time(digest_time or settings.digest_time)
        self._locks = {
            CLEANUP_JOB_ID: threading.Lock(),
            DIGEST_JOB_ID: threading.Lock(),
        }
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        """Register both jobs and start ticking; must run inside the event loop."""

        if self._scheduler is not None:
            return

        timezone = get_app_timezone()
        scheduler = AsyncIOScheduler(timezone=timezone)
        scheduler.add_job(
            self._cleanup_job,
            trigger=CronTrigger(
                hour=self._cleanup_time.hour,
                minute=self._cleanup_time.minute,
                timezone=timezone,
            ),
            id=CLEANUP_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.add_job(
            self._digest_job,
            trigger=CronTrigger(
                hour=self._digest_time.hour,
                minute=self._digest_time.minute,
                timezone=timezone,
            ),
            id=DIGEST_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(
            "Notification scheduler started (cleanup %s, digests %s)",
            self._cleanup_time.strftime("%H:%M"),
            self._digest_time.strftime("%H:%M"),
        )

    def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Notification scheduler stopped")

    def run_cleanup(self) -> int | None:
        """Run the expiry cleanup now; ``None`` when skipped or failed."""

        return self._guarded(CLEANUP_JOB_ID, self._cleanup)

    def run_digests(self) -> DigestRunSummary | None:
        """Send due digests now; ``None`` when skipped or failed."""

        return self._guarded(DIGEST_JOB_ID, self._digests)

    async def _cleanup_job(self) -> None:
        await to_thread.run_sync(self.run_cleanup)

    async def _digest_job(self) -> None:
        await to_thread.run_sync(self.run_digests)

    def _cleanup(self) -> int:
        session = self._session_factory()
        try:
            return cleanup_expired_notifications(session)
        finally:
            session.close()

    def _digests(self) -> DigestRunSummary:
        session = self._session_factory()
        try:
            return send_notification_digests(
                session, composer=self._composer_factory(session)
            )
        finally:
            session.close()

    def _guarded(self, job_id: str, job: Callable[[], T]) -> T | None:
        lock = self._locks[job_id]
        if not lock.acquire(blocking=False):
            logger.warning("Job %s is still running; skipping this trigger", job_id)
            return None
        try:
            return job()
        except Exception:
            logger.exception("Job %s failed; it will run again on the next trigger", job_id)
            return None
        finally:
            lock.release()


__all__ = [
    "CLEANUP_JOB_ID",
    "DIGEST_JOB_ID",
    "NotificationScheduler",
    "build_email_digest_composer",
]

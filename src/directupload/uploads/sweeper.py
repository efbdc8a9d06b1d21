"""Reclamation of uploads that were never verified.

The sweeper claims expired pending sessions with the same conditional write
the verifier uses, so a session is either verified or reclaimed, never both.
Only objects of sessions this process moved to ``expired`` (or that were
already ``expired``) are deleted.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from directupload.storage.base import StorageAdapter
from directupload.uploads.exceptions import StorageAdapterUnavailable
from directupload.uploads.models import UploadSession, UploadState, utcnow
from directupload.uploads.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Outcome counts of one sweep."""

    claimed: int = 0  # pending -> expired by this sweep
    reclaimed: int = 0  # expired -> reclaimed by this sweep
    skipped: int = 0  # lost the race to a verifier or another sweeper
    failed: int = 0  # left for the next sweep


class ReclamationSweeper:
    """Deletes orphaned objects and finalizes their sessions."""

    def __init__(
        self,
        store: SessionStore,
        storage: StorageAdapter,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.storage = storage
        self.clock = clock

    def sweep(self, limit: int | None = None, now: datetime | None = None) -> SweepReport:
        """Reclaim every unverified session past its window.

        Args:
            limit: Maximum number of sessions to process, None for all
            now: Reference time, defaults to the sweeper's clock

        Returns:
            SweepReport
        """
        now = now or self.clock()
        report = SweepReport()

        for upload in self.store.list_reclaimable(now, limit):
            try:
                self._reclaim(upload, now, report)
            except Exception as e:
                report.failed += 1
                logger.error(
                    f"Failed to reclaim token={upload.token[:8]}: {e}",
                    exc_info=True,
                    extra={"object_key": upload.object_key},
                )

        logger.info(
            f"Sweep finished: reclaimed={report.reclaimed}, claimed={report.claimed}, "
            f"skipped={report.skipped}, failed={report.failed}"
        )
        return report

    def _reclaim(self, upload: UploadSession, now: datetime, report: SweepReport) -> None:
        version = upload.version

        if upload.upload_state is UploadState.PENDING:
            if not self.store.transition(upload.token, version, UploadState.PENDING, UploadState.EXPIRED):
                report.skipped += 1
                return
            version += 1
            report.claimed += 1

        try:
            deleted = self.storage.delete(upload.object_key)
        except StorageAdapterUnavailable as e:
            # Row stays expired and is picked up again next sweep
            report.failed += 1
            logger.warning(f"Delete of {upload.object_key} failed, retrying next sweep: {e}")
            return

        if not self.store.transition(
            upload.token, version, UploadState.EXPIRED, UploadState.RECLAIMED, reclaimed_at=now
        ):
            report.skipped += 1
            return

        report.reclaimed += 1
        logger.debug(
            f"Reclaimed token={upload.token[:8]}, object_key={upload.object_key}, "
            f"object {'deleted' if deleted else 'already absent'}"
        )


class SweepScheduler:
    """Runs the sweeper on a fixed interval plus a periodic full sweep."""

    def __init__(
        self,
        sweeper: ReclamationSweeper,
        interval_seconds: float,
        full_interval_seconds: float,
        batch_size: int | None = None,
    ):
        self.sweeper = sweeper
        self.interval_seconds = interval_seconds
        self.full_interval_seconds = full_interval_seconds
        self.batch_size = batch_size
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Start the background sweep tasks."""
        if self._tasks:
            return

        self._tasks = [
            asyncio.create_task(self._frequent_loop(), name="upload-sweep"),
            asyncio.create_task(self._full_loop(), name="upload-full-sweep"),
        ]
        logger.info(
            f"Sweeper started: every {self.interval_seconds}s "
            f"(batch {self.batch_size}), full sweep every {self.full_interval_seconds}s"
        )

    async def stop(self) -> None:
        """Cancel the background sweep tasks and wait for them to finish."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def run_once(self, limit: Optional[int] = None) -> SweepReport | None:
        """Run one sweep in a worker thread; errors are logged, not raised."""
        try:
            return await asyncio.to_thread(self.sweeper.sweep, limit)
        except Exception as e:
            logger.error(f"Sweep run failed: {e}", exc_info=True)
            return None

    async def _frequent_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once(self.batch_size)

    async def _full_loop(self) -> None:
        # Runs at startup too, to catch up on cycles missed while down
        while True:
            await self.run_once(None)
            await asyncio.sleep(self.full_interval_seconds)

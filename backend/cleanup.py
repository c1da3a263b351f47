"""Cleanup: reclaims blob chunk groups that never became objects.

A blob write that dies between its first part and its completion leaves an
unfinished multipart upload behind. The scheduler runs one pass at the
configured hour and then every 24 hours.

Run standalone: python cleanup.py
"""

import logging
import threading
from datetime import datetime, timedelta, timezone

from botocore.exceptions import BotoCoreError, ClientError

from api.files.repositories import files_repository
from blob_store import BlobStore
from context import StoreContext

logger = logging.getLogger(__name__)

SWEEP_INTERVAL = timedelta(hours=24)


def run_cleanup(blobs: BlobStore, grace: timedelta = timedelta(0)) -> int:
    """Delete chunk groups with no finished object. Returns how many were deleted.

    Groups started less than ``grace`` ago are skipped so in-flight uploads
    survive. A failure on one group is logged and the pass moves on.
    """
    count = 0
    cutoff = datetime.now(timezone.utc) - grace

    for group in blobs.chunk_groups():
        if group.initiated > cutoff:
            continue
        try:
            if blobs.exists(group.key):
                continue
            blobs.delete_chunk_group(group)
        except (BotoCoreError, ClientError):
            logger.exception("Failed to delete chunk group %s (%s)", group.key, group.upload_id)
            continue
        logger.info("Deleted chunk group %s as its file does not exist", group.key)
        count += 1

    logger.info("Cleanup pass finished, %d chunk group(s) deleted", count)
    return count


def audit_dangling_records(ctx: StoreContext) -> list[int]:
    """Log metadata rows whose blob no longer exists. Nothing is deleted."""
    dangling = []
    with ctx.session() as session:
        for file_id, blob_ref in files_repository.iter_blob_refs(session):
            try:
                present = ctx.blobs.is_valid_ref(blob_ref) and ctx.blobs.exists(blob_ref)
            except (BotoCoreError, ClientError):
                logger.exception("Failed to check blob %s of file %s", blob_ref, file_id)
                continue
            if not present:
                logger.warning("File record %s points at missing blob %s", file_id, blob_ref)
                dangling.append(file_id)
    return dangling


def next_run_at(now: datetime, hour: int) -> datetime:
    """The next occurrence of ``hour``:00, tomorrow if today's has passed."""
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if now > target:
        target += timedelta(days=1)
    return target


class CleanupScheduler:
    """Runs cleanup passes on a single background thread.

    Waits go through a ``threading.Event``, so ``stop()`` interrupts a sleep
    and a pass never overlaps the previous one.
    """

    def __init__(
        self,
        ctx: StoreContext,
        hour: int = 4,
        interval: timedelta = SWEEP_INTERVAL,
        grace: timedelta = timedelta(hours=1),
        audit: bool = False,
        clock=datetime.now,
    ) -> None:
        self.ctx = ctx
        self.hour = hour
        self.interval = interval
        self.grace = grace
        self.audit = audit
        self.clock = clock
        self.passes = 0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def initial_delay(self) -> timedelta:
        now = self.clock()
        return next_run_at(now, self.hour) - now

    def run_pass(self) -> int:
        try:
            count = run_cleanup(self.ctx.blobs, self.grace)
            if self.audit:
                audit_dangling_records(self.ctx)
            return count
        except Exception:
            logger.exception("Cleanup pass failed")
            return 0
        finally:
            self.passes += 1

    def run(self, max_passes: int | None = None) -> None:
        delay = self.initial_delay()
        logger.info("Waiting %s until the first cleanup pass", delay)
        while not self._stop.wait(delay.total_seconds()):
            logger.info("Cleaning chunks...")
            self.run_pass()
            if max_passes is not None and self.passes >= max_passes:
                break
            delay = self.interval

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="cleanup-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    context = StoreContext()
    run_cleanup(context.blobs, context.settings.cleanup_grace)

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.cache import TTLCache
from db.store import JobStore

log = logging.getLogger(__name__)


class Housekeeper:
    """Periodically drops expired jobs and cache entries."""

    def __init__(self, store: JobStore, cache: TTLCache, interval_minutes: int = 10):
        self.store = store
        self.cache = cache
        self.interval_minutes = interval_minutes
        self.scheduler = AsyncIOScheduler()

    def start(self) -> None:
        self.scheduler.add_job(
            self.run_once,
            IntervalTrigger(minutes=self.interval_minutes),
            id="housekeeping",
            replace_existing=True,
        )
        self.scheduler.start()
        log.info(f"Housekeeping scheduled every {self.interval_minutes}m")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    async def run_once(self) -> tuple[int, int]:
        jobs = await self.store.cleanup_expired()
        entries = self.cache.purge_expired()
        log.info(f"Housekeeping: {jobs} expired jobs, {entries} expired cache entries removed")
        return jobs, entries

import asyncio
import logging
import uuid

from core.listing import ListingRecord
from core.service import ScrapeService
from db.models import EnrichmentJob
from db.store import JobStore

log = logging.getLogger(__name__)


class JobOrchestrator:
    """Runs detail enrichment passes as background tasks tracked in the job store."""

    def __init__(self, store: JobStore, service: ScrapeService):
        self.store = store
        self.service = service
        self._tasks: dict[str, asyncio.Task] = {}

    async def submit(self, items: list[ListingRecord]) -> str:
        job_id = str(uuid.uuid4())
        await self.store.create_job(job_id, total=sum(1 for i in items if i.needs_detail))

        task = asyncio.create_task(self._run(job_id, items), name=f"enrich-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job_id, None))
        log.info(f"Job {job_id} queued with {len(items)} listings")
        return job_id

    async def status(self, job_id: str) -> EnrichmentJob | None:
        return await self.store.get_job(job_id)

    def is_running(self, job_id: str) -> bool:
        return job_id in self._tasks

    async def _report_progress(self, job_id: str, processed: int, total: int) -> None:
        try:
            await self.store.update_progress(job_id, processed, total)
        except Exception as e:
            log.warning(f"Job {job_id}: progress update {processed}/{total} dropped: {e}")

    async def _run(self, job_id: str, items: list[ListingRecord]) -> None:
        try:
            await self.store.mark_active(job_id)

            async def on_progress(processed: int, total: int) -> None:
                await self._report_progress(job_id, processed, total)

            report = await self.service.enrich(items, on_progress=on_progress)
            await self.store.save_result(job_id, items)
            log.info(f"Job {job_id} completed: {report.priced}/{report.total} prices found")
        except asyncio.CancelledError:
            log.warning(f"Job {job_id} cancelled")
            await self._mark_failed(job_id, "cancelled")
            raise
        except Exception as e:
            log.exception(f"Job {job_id} failed: {e}")
            await self._mark_failed(job_id, str(e) or e.__class__.__name__)

    async def _mark_failed(self, job_id: str, message: str) -> None:
        try:
            await self.store.mark_failed(job_id, message)
        except Exception as e:
            log.error(f"Job {job_id}: could not record failure: {e}")

    async def close(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

"""Background enrichment job endpoints."""
from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_orchestrator
from api.schemas import EnrichRequestModel, JobAccepted, JobResponse
from core.jobs import JobOrchestrator

router = APIRouter()


@router.post("/enrich", response_model=JobAccepted, status_code=202)
async def create_enrich_job(
    req: EnrichRequestModel,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """
    Queue a detail-page price lookup for listings whose price is still missing.

    Returns immediately with the job id; poll ``GET /api/jobs/{job_id}``.
    """
    records = [item.to_record() for item in req.items]
    job_id = await orchestrator.submit(records)
    return JobAccepted(job_id=job_id, total=sum(1 for r in records if r.needs_detail))


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, orchestrator: JobOrchestrator = Depends(get_orchestrator)):
    job = await orchestrator.status(job_id)
    if not job:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found or expired")
    return JobResponse.from_job(job)

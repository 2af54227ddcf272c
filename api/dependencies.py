"""FastAPI dependencies."""
from fastapi import Request

from core.jobs import JobOrchestrator
from core.service import ScrapeService


async def get_service(request: Request) -> ScrapeService:
    """Scrape service created at startup and stored in app state."""
    return request.app.state.service


async def get_orchestrator(request: Request) -> JobOrchestrator:
    return request.app.state.orchestrator

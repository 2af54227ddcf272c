"""Synchronous scrape and cache endpoints."""
from fastapi import APIRouter, Depends

from api.dependencies import get_service
from api.schemas import ScrapeRequestModel, ScrapeResponse
from core.service import ScrapeService

router = APIRouter()


@router.post("/scrape", response_model=ScrapeResponse)
async def scrape(req: ScrapeRequestModel, service: ScrapeService = Depends(get_service)):
    """
    Walk every result page of a search URL and return the deduplicated listings.

    Listings without a card price are enriched from their detail page. A batch
    cut short by ``maxPages`` comes back with ``partial: true`` and a warning;
    a full walk whose count disagrees with the site's total fails with a 500
    carrying the diagnostic ``meta``.
    """
    request = service.build_request(
        req.url,
        page_size=req.page_size,
        max_pages=req.max_pages,
        no_cache=req.no_cache,
    )
    result = await service.scrape(request)
    return ScrapeResponse.from_result(result)


@router.post("/cache/clear")
async def clear_cache(service: ScrapeService = Depends(get_service)):
    cleared = service.clear_cache()
    return {"ok": True, "cleared": cleared}

import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.routes import health, jobs, scrape
from config import settings
from core.browser import BrowserPool
from core.errors import InvalidRequestError, ScrapeError
from core.housekeeping import Housekeeper
from core.jobs import JobOrchestrator
from core.service import ScrapeService
from db.store import JobStore, JobStoreUnavailable

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging() -> None:
    log_dir = Path("./logs")
    log_dir.mkdir(exist_ok=True)
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    file_handler = RotatingFileHandler(
        log_dir / "listing-harvester.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    file_handler.setLevel(log_level)
    logging.getLogger().addHandler(file_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    service = ScrapeService(BrowserPool(settings), settings)
    store = JobStore()
    await store.connect()
    log.info(f"Job store connected: {store.db_path}")

    orchestrator = JobOrchestrator(store, service)
    housekeeper = Housekeeper(store, service.cache, settings.housekeeping_interval_minutes)
    housekeeper.start()

    app.state.service = service
    app.state.orchestrator = orchestrator
    try:
        yield
    finally:
        log.info("Shutting down")
        housekeeper.stop()
        await orchestrator.close()
        await service.close()
        await store.close()


async def _invalid_request(request: Request, exc: InvalidRequestError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def _scrape_failed(request: Request, exc: ScrapeError) -> JSONResponse:
    log.error(f"{request.url.path} failed: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc), "meta": exc.meta})


async def _store_unavailable(request: Request, exc: JobStoreUnavailable) -> JSONResponse:
    log.warning(f"Job store unavailable: {exc}")
    return JSONResponse(status_code=503, content={"error": str(exc)})


def create_app() -> FastAPI:
    app = FastAPI(title="Listing Harvester", version="1.0.0", lifespan=lifespan)
    app.add_exception_handler(InvalidRequestError, _invalid_request)
    app.add_exception_handler(ScrapeError, _scrape_failed)
    app.add_exception_handler(JobStoreUnavailable, _store_unavailable)

    app.include_router(health.router, tags=["health"])
    app.include_router(scrape.router, prefix="/api", tags=["scrape"])
    app.include_router(jobs.router, prefix="/api", tags=["jobs"])
    return app


app = create_app()


def main() -> None:
    configure_logging()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()

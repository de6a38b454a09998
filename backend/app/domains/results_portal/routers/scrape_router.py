import uuid
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException

from app.container import ServiceContainer
from app.dependencies import get_container
from app.domains.results_portal.schemas.scrape_schemas import (
    StartScrapeRequest, StartScrapeResponse, WorkerRequest, WorkerResponse
)
from app.domains.results_portal.services.auth_dependency import require_api_key
from ingestion.results_ingestion.core.exceptions import (
    BatchDispatchFailed, ConfigurationError, StoreUnavailable
)
from ingestion.results_ingestion.core.orchestrator import BatchRequest
from ingestion.common.services.profile_factory import ProfileFactory
from ingestion.results_ingestion.core.ticket_space import HallTicketSpace

router = APIRouter(prefix="/scrape", tags=["Results Portal: Scrape"], dependencies=[Depends(require_api_key)])


def get_dispatcher() -> Callable[[int], Optional[str]]:
    # Imported lazily: the celery app is only needed when a batch is queued
    from ingestion.tasks import dispatch_chunk
    return dispatch_chunk


@router.post("/start", response_model=StartScrapeResponse)
def start_scrape(
    req: StartScrapeRequest,
    container: ServiceContainer = Depends(get_container),
    dispatch: Callable[[int], Optional[str]] = Depends(get_dispatcher),
):
    settings = container.settings
    use_range = not req.profile
    request = BatchRequest(
        exam_code=req.exam_code or settings.RESULTS_EXAM_CODE,
        workers=req.workers or settings.SCRAPER_WORKER_COUNT,
        delay_ms=settings.SCRAPER_DELAY_MS if req.delay_ms is None else req.delay_ms,
        profile_slug=req.profile,
        college_code=req.college_code,
        range_start=(req.range_start or settings.HALL_TICKET_START) if use_range else None,
        range_end=(req.range_end or settings.HALL_TICKET_END) if use_range else None,
    )

    try:
        batch_id = container.orchestrator.start_batch(request, dispatch)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BatchDispatchFailed as e:
        raise HTTPException(
            status_code=503,
            detail={"message": "Task queue unavailable", "batch_id": str(e.batch_id), "error": e.reason},
        )

    progress = container.orchestrator.get_progress(batch_id)
    return {
        "status": "started",
        "message": "Scraping job queued",
        "batch_id": progress["batch_id"],
        "config": {
            "total_students": progress["total"],
            "workers": progress["workers"],
            "chunk_size": progress["chunk_size"],
        },
        "plan": progress["plan"],
    }


@router.post("/worker", response_model=WorkerResponse)
def run_worker(req: WorkerRequest, container: ServiceContainer = Depends(get_container)):
    """Synchronous chunk processing for callers that bring their own hall ticket list."""
    settings = container.settings
    delay_ms = settings.SCRAPER_DELAY_MS if req.delay_ms is None else req.delay_ms
    try:
        stats = container.new_worker().process_chunk(
            [ht.upper() for ht in req.hall_tickets],
            req.exam_code or settings.RESULTS_EXAM_CODE,
            delay_ms / 1000,
        )
    except StoreUnavailable:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return {"status": "complete", "stats": stats.to_dict()}


@router.get("/batches/{batch_id}")
def get_batch(batch_id: uuid.UUID, container: ServiceContainer = Depends(get_container)):
    progress = container.orchestrator.get_progress(batch_id)
    if progress is None:
        raise HTTPException(status_code=404, detail="Batch not found")
    return progress


@router.get("/profiles/{slug}")
def describe_profile(
    slug: str,
    college_code: Optional[str] = None,
    container: ServiceContainer = Depends(get_container),
):
    try:
        space = HallTicketSpace(ProfileFactory.get_profile(slug, college_code))
    except ConfigurationError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {
        "profile": slug,
        "total": space.total,
        "breakdown": space.breakdown(),
        "estimate": space.estimate_scrape_time(container.settings.SCRAPER_DELAY_MS),
    }

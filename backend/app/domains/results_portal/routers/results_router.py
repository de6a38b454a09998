from fastapi import APIRouter, Depends, HTTPException

from app.container import ServiceContainer
from app.dependencies import get_container
from ingestion.results_ingestion.core.exceptions import PersistenceError, ResultsTemporarilyUnavailable

router = APIRouter(prefix="/results", tags=["Results Portal: Lookup"])


@router.get("/{hall_ticket}")
def check_result(hall_ticket: str, container: ServiceContainer = Depends(get_container)):
    try:
        result = container.lookup.lookup(hall_ticket.upper())
    except ResultsTemporarilyUnavailable:
        raise HTTPException(status_code=503, detail="Results portal temporarily unavailable")
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Internal server error")

    if not result.found:
        raise HTTPException(status_code=404, detail="Result not found")

    return {"source": result.source, "data": result.record.model_dump(mode="json")}

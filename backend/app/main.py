import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.config import get_settings
from app.container import ServiceContainer
from app.dependencies import get_container
from app.domains.results_portal.routers import results_router, scrape_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ConfigurationError here is fatal: the API must not start half-configured
    container = ServiceContainer.open(get_settings())
    app.state.container = container
    try:
        yield
    finally:
        container.close()


app = FastAPI(title="Results Harvester", lifespan=lifespan)

# --- CORS POLICY ---
origins = [
    "http://localhost:3000",      # Local Development
    "http://127.0.0.1:3000",      # Alternative Localhost
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(results_router.router)
app.include_router(scrape_router.router)


@app.get("/")
def root():
    return {"message": "Results Harvester API is Online"}


@app.get("/health")
def health_check(container: ServiceContainer = Depends(get_container)):
    settings = container.settings
    status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.ENVIRONMENT,
        "redis": {"configured": container.redis is not None, "enabled": container.cache.enabled},
        "scraper": {
            "workers": settings.SCRAPER_WORKER_COUNT,
            "hallTicketRange": {"start": settings.HALL_TICKET_START, "end": settings.HALL_TICKET_END},
        },
    }
    try:
        with container.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        status["database"] = "connected"
    except Exception as e:
        logger.error(f"Health check database failure: {e}")
        status["status"] = "unhealthy"
        status["database"] = str(e)
    return status

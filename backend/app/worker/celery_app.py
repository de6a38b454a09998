from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init, worker_process_shutdown
from app.config import get_settings
import logging

settings = get_settings()

# Initialize Celery (Redis is both broker and result backend)
celery_app = Celery(
    "results_worker",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL
)

# Scrape Worker Configuration
celery_app.conf.update(
    # 1. Serialization Security
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # 2. Queue Isolation
    task_default_queue="default",
    task_routes={
        # Bulk scrape chunks -> dedicated lane. Pool size (--concurrency) bounds parallel workers.
        "ingestion.tasks.process_scrape_chunk": {"queue": "scrape_queue"},
        "ingestion.tasks.watch_results_portal": {"queue": "default"},
    },

    # 3. Safety Limits
    task_time_limit=3 * 3600,        # Hard Kill: a 1000-ticket chunk at slow portal speeds
    task_soft_time_limit=3 * 3600 - 300,

    # 4. Resilience
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=500,
)

# The Schedule (best-effort watcher)
celery_app.conf.beat_schedule = {
    "watch-results-portal-every-5-minutes": {
        "task": "ingestion.tasks.watch_results_portal",
        "schedule": crontab(minute="*/5"),
    },
}

celery_app.autodiscover_tasks(["ingestion"])

logger = logging.getLogger(__name__)


# --- PROCESS LIFECYCLE: one ServiceContainer per worker process ---

@worker_process_init.connect
def open_services(**kwargs):
    from ingestion.tasks import open_container
    open_container(settings)


@worker_process_shutdown.connect
def close_services(**kwargs):
    from ingestion.tasks import close_container
    close_container()

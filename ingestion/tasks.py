from typing import Optional

from celery import shared_task
from celery.utils.log import get_task_logger
from sqlalchemy.exc import OperationalError

from app.config import Settings, get_settings
from app.container import ServiceContainer
from ingestion.results_ingestion.core.exceptions import StoreUnavailable

logger = get_task_logger(__name__)

_container: Optional[ServiceContainer] = None


def open_container(settings: Optional[Settings] = None) -> ServiceContainer:
    global _container
    if _container is None:
        _container = ServiceContainer.open(settings or get_settings())
    return _container


def close_container():
    global _container
    if _container is not None:
        _container.close()
        _container = None


def dispatch_chunk(chunk_id: int) -> str:
    """Dispatcher handed to BatchOrchestrator.start_batch."""
    task = process_scrape_chunk.apply_async(args=[chunk_id], queue="scrape_queue")
    return task.id


@shared_task(
    name="ingestion.tasks.process_scrape_chunk",
    bind=True,
    max_retries=3,
    autoretry_for=(StoreUnavailable, OperationalError),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_jitter=True
)
def process_scrape_chunk(self, chunk_id: int):
    """
    THE WORKER: one chunk, strictly in order.
    Per-hall-ticket failures are reported in stats. Only an unreachable
    database aborts and retries the chunk; already saved rows are upserts.
    """
    container = open_container()
    worker = container.new_worker()

    logger.info(f"▶️ Starting Chunk {chunk_id}")
    stats = container.orchestrator.run_chunk(chunk_id, worker)
    logger.info(f"✅ Chunk {chunk_id} Complete | {stats.to_dict()}")
    return {
        "processed": stats.processed,
        "success": stats.success,
        "not_found": stats.not_found,
        "failed_count": stats.failed_count,
    }


@shared_task(name="ingestion.tasks.watch_results_portal")
def watch_results_portal():
    """
    THE BEAT: best-effort poll for newly published results.
    """
    container = open_container()
    report = container.watcher.check()
    if report["changed"]:
        logger.warning(f"🆕 New result published: {report['latest_result']}")
    return report

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.sql import func

from app.models import ScrapeBatch, ScrapeChunk
from ingestion.common.services.profile_factory import ProfileFactory
from ingestion.results_ingestion.core.chunk_worker import ChunkStats, ChunkWorker
from ingestion.results_ingestion.core.exceptions import BatchDispatchFailed, ConfigurationError
from ingestion.results_ingestion.core.hall_tickets import is_valid_hall_ticket
from ingestion.results_ingestion.core.partitioner import partition
from ingestion.results_ingestion.core.ticket_space import (
    HallTicketSource, HallTicketSpace, NumericHallTicketRange
)

logger = logging.getLogger(__name__)

STAT_KEYS = (
    "processed", "success", "not_found", "parse_incomplete", "rejected", "cache_failures", "failed_count",
)


@dataclass
class BatchRequest:
    """Either a profile (slug [+ college code]) or a numeric range. Never both."""
    exam_code: str
    workers: int
    delay_ms: int
    profile_slug: Optional[str] = None
    college_code: Optional[str] = None
    range_start: Optional[str] = None
    range_end: Optional[str] = None

    @property
    def source_kind(self) -> str:
        return "PROFILE" if self.profile_slug else "RANGE"


def resolve_source(
    profile_slug: Optional[str] = None,
    college_code: Optional[str] = None,
    range_start: Optional[str] = None,
    range_end: Optional[str] = None,
) -> HallTicketSource:
    """Re-derives the same deterministic sequence from stored batch parameters."""
    if profile_slug:
        return HallTicketSpace(ProfileFactory.get_profile(profile_slug, college_code))
    if range_start is not None and range_end is not None:
        try:
            source = NumericHallTicketRange.from_strings(range_start, range_end)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        # Every identifier shares the padded width, so the two bounds decide for the whole range
        for bound in (source.start, source.end):
            padded = str(bound).zfill(source.width)
            if not is_valid_hall_ticket(padded):
                raise ConfigurationError(f"Range bound {padded!r} is not a valid hall ticket")
        return source
    raise ConfigurationError("Batch needs either a profile slug or a numeric range")


class BatchOrchestrator:
    """
    The Coordinator.
    1. Enumerate: resolve the hall ticket source and its total.
    2. Partition: contiguous, disjoint [start, stop) chunks.
    3. Record: one scrape_batches row + one scrape_chunks row per chunk.
    4. Enqueue: hand chunk ids to a dispatcher (Celery queue or local pool).
    Workers re-derive their hall tickets from the chunk bounds: nothing big
    travels through the queue.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    # --- 1-3. PLAN & RECORD ---

    def create_batch(self, request: BatchRequest) -> uuid.UUID:
        source = resolve_source(request.profile_slug, request.college_code, request.range_start, request.range_end)
        plan = partition(source.total, request.workers)

        logger.info(
            f"🚀 Planning batch. Total: {source.total}, Workers: {request.workers}, "
            f"Chunk: {plan.chunk_size}, Chunks: {len(plan.chunks)}"
        )

        db = self.session_factory()
        try:
            batch = ScrapeBatch(
                source_kind=request.source_kind,
                profile_slug=request.profile_slug,
                college_code=request.college_code,
                range_start=request.range_start,
                range_end=request.range_end,
                exam_code=request.exam_code,
                delay_ms=request.delay_ms,
                worker_count=request.workers,
                chunk_size=str(plan.chunk_size),
                total=str(source.total),
                status="QUEUED",
            )
            db.add(batch)
            db.flush()

            for chunk in plan.chunks:
                db.add(ScrapeChunk(
                    batch_id=batch.batch_id,
                    chunk_index=chunk.index,
                    start_index=str(chunk.start),
                    stop_index=str(chunk.stop),
                    status="PENDING",
                    stats={},
                    failed_hall_tickets=[],
                ))
            db.commit()
            return batch.batch_id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def chunk_ids(self, batch_id: uuid.UUID) -> List[int]:
        db = self.session_factory()
        try:
            return list(db.execute(
                select(ScrapeChunk.id)
                .where(ScrapeChunk.batch_id == batch_id)
                .order_by(ScrapeChunk.chunk_index)
            ).scalars().all())
        finally:
            db.close()

    # --- 4. ENQUEUE ---

    def start_batch(self, request: BatchRequest, dispatch: Callable[[int], Optional[str]]) -> uuid.UUID:
        """
        Records the batch and enqueues every chunk. Returns immediately.
        If the queue refuses a chunk, that chunk and every one after it is
        marked FAILED, the batch becomes DISPATCH_FAILED and BatchDispatchFailed
        carries the batch id back to the caller. Chunks already enqueued still run.
        """
        batch_id = self.create_batch(request)
        chunk_ids = self.chunk_ids(batch_id)
        dispatched = 0

        for position, chunk_id in enumerate(chunk_ids):
            try:
                task_id = dispatch(chunk_id)
            except Exception as e:
                self._fail_undispatched(batch_id, chunk_ids[position:], e)
                raise BatchDispatchFailed(batch_id, str(e)) from e
            self._update_chunk(chunk_id, task_id=task_id)
            dispatched += 1

        self._set_batch_status(batch_id, "DISPATCHED")
        logger.info(f"📬 Batch {batch_id}: {dispatched} chunks enqueued")
        return batch_id

    def run_local(self, batch_id: uuid.UUID, worker_factory: Callable[[], ChunkWorker], max_workers: int) -> Dict[str, Any]:
        """
        In-process execution of a recorded batch on a fixed-size thread pool.
        Each chunk gets its own ChunkWorker; they share only the DB and cache.
        """
        chunk_ids = self.chunk_ids(batch_id)
        self._set_batch_status(batch_id, "DISPATCHED")

        with ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="scrape-worker") as pool:
            futures = {pool.submit(self.run_chunk, cid, worker_factory()): cid for cid in chunk_ids}
            for future in as_completed(futures):
                try:
                    future.result()
                except Exception as e:
                    logger.error(f"Chunk {futures[future]} aborted: {e}")

        return self.get_progress(batch_id)

    # --- WORKER SIDE ---

    def run_chunk(self, chunk_id: int, worker: ChunkWorker) -> ChunkStats:
        db = self.session_factory()
        try:
            chunk = db.execute(
                select(ScrapeChunk).options(selectinload(ScrapeChunk.batch)).where(ScrapeChunk.id == chunk_id)
            ).scalar_one_or_none()
            if chunk is None:
                raise ConfigurationError(f"Chunk {chunk_id} not found")
            batch = chunk.batch
            source = resolve_source(batch.profile_slug, batch.college_code, batch.range_start, batch.range_end)
            start, stop = int(chunk.start_index), int(chunk.stop_index)
            exam_code, delay = batch.exam_code, batch.delay_ms / 1000
        finally:
            db.close()

        self._update_chunk(chunk_id, status="RUNNING", started_at=func.now())
        logger.info(f"👷 Chunk {chunk_id} started: [{start}, {stop})")

        try:
            stats = worker.process_chunk(source.iter_range(start, stop), exam_code, delay)
        except Exception as e:
            try:
                self._update_chunk(chunk_id, status="FAILED", error=str(e)[:1000], completed_at=func.now())
            except SQLAlchemyError as mark_error:
                logger.error(f"Could not mark chunk {chunk_id} as FAILED: {mark_error}")
            raise

        stats_dict = stats.to_dict()
        failed = stats_dict.pop("failed")
        self._update_chunk(
            chunk_id,
            status="COMPLETED",
            stats=stats_dict,
            failed_hall_tickets=failed,
            error=None,
            completed_at=func.now(),
        )
        return stats

    # --- PROGRESS ---

    def get_progress(self, batch_id: uuid.UUID) -> Optional[Dict[str, Any]]:
        db = self.session_factory()
        try:
            batch = db.execute(
                select(ScrapeBatch).options(selectinload(ScrapeBatch.chunks)).where(ScrapeBatch.batch_id == batch_id)
            ).scalar_one_or_none()
            if batch is None:
                return None

            totals = {key: 0 for key in STAT_KEYS}
            by_status: Dict[str, int] = {}
            failed: List[str] = []
            for chunk in batch.chunks:
                by_status[chunk.status] = by_status.get(chunk.status, 0) + 1
                for key in STAT_KEYS:
                    totals[key] += int((chunk.stats or {}).get(key, 0))
                failed.extend(chunk.failed_hall_tickets or [])

            return {
                "batch_id": str(batch.batch_id),
                "status": self._derive_status(batch.status, by_status, len(batch.chunks)),
                "exam_code": batch.exam_code,
                "source": {
                    "kind": batch.source_kind,
                    "profile": batch.profile_slug,
                    "college_code": batch.college_code,
                    "range": [batch.range_start, batch.range_end] if batch.source_kind == "RANGE" else None,
                },
                "total": batch.total,
                "workers": batch.worker_count,
                "chunk_size": batch.chunk_size,
                "chunks": by_status,
                "stats": totals,
                "failed_hall_tickets": failed,
                "plan": [
                    {
                        "chunk_index": c.chunk_index,
                        "range": {"start": c.start_index, "stop": c.stop_index},
                        "status": c.status,
                        "task_id": c.task_id,
                    }
                    for c in batch.chunks
                ],
            }
        finally:
            db.close()

    @staticmethod
    def _derive_status(recorded: str, by_status: Dict[str, int], chunk_count: int) -> str:
        if chunk_count == 0:
            return "COMPLETED"
        if recorded == "DISPATCH_FAILED":
            return recorded
        if by_status.get("COMPLETED", 0) == chunk_count:
            return "COMPLETED"
        if by_status.get("RUNNING", 0):
            return "RUNNING"
        if by_status.get("FAILED", 0) and not by_status.get("PENDING", 0):
            return "PARTIAL_FAILURE"
        if by_status.get("COMPLETED", 0) or by_status.get("FAILED", 0):
            return "RUNNING"
        return recorded

    # --- HELPERS ---

    def _update_chunk(self, chunk_id: int, **values):
        db = self.session_factory()
        try:
            chunk = db.get(ScrapeChunk, chunk_id)
            for key, value in values.items():
                setattr(chunk, key, value)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _fail_undispatched(self, batch_id: uuid.UUID, chunk_ids: List[int], error: Exception):
        logger.error(f"❌ Batch {batch_id}: dispatch failed, {len(chunk_ids)} chunks never enqueued: {error}")
        db = self.session_factory()
        try:
            for chunk in db.execute(select(ScrapeChunk).where(ScrapeChunk.id.in_(chunk_ids))).scalars():
                chunk.status = "FAILED"
                chunk.error = f"dispatch failed: {error}"[:1000]
                chunk.completed_at = func.now()
            db.get(ScrapeBatch, batch_id).status = "DISPATCH_FAILED"
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _set_batch_status(self, batch_id: uuid.UUID, status: str):
        db = self.session_factory()
        try:
            batch = db.get(ScrapeBatch, batch_id)
            batch.status = status
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Iterable, List

from celery.exceptions import SoftTimeLimitExceeded

from ingestion.results_ingestion.core.exceptions import (
    FetchFailed, InvalidHallTicket, ParseIncomplete, StoreUnavailable
)
from ingestion.results_ingestion.core.result_store import ResultStore
from ingestion.results_ingestion.core.scraper import ResultScraper

logger = logging.getLogger(__name__)


@dataclass
class ChunkStats:
    processed: int = 0
    success: int = 0
    not_found: int = 0
    parse_incomplete: int = 0   # subset of not_found
    rejected: int = 0           # malformed hall tickets, never requested
    cache_failures: int = 0     # saved, but the Redis write-through failed
    failed: List[str] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["failed_count"] = self.failed_count
        return data


class ChunkWorker:
    """
    Drives the scraper over one chunk, strictly in order.

    RESILIENCE:
    1. One hall ticket's failure never aborts the chunk: it lands in stats.failed.
    2. Only StoreUnavailable (database unreachable) and the Celery soft time
       limit propagate.
    3. `delay` is a floor between consecutive fetches, not a schedule.
    """

    def __init__(
        self,
        scraper: ResultScraper,
        store: ResultStore,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.scraper = scraper
        self.store = store
        self.sleep = sleep

    def process_chunk(self, hall_tickets: Iterable[str], exam_code: str, delay: float) -> ChunkStats:
        stats = ChunkStats()

        for hall_ticket in hall_tickets:
            stats.processed += 1

            # [POLITENESS] Rate limit before every fetch except the first
            if stats.processed > 1 and delay > 0:
                self.sleep(delay)

            try:
                record = self.scraper.fetch_and_parse(hall_ticket, exam_code, raise_incomplete=True)
                if record is None:
                    stats.not_found += 1
                    continue

                if self.store.save(record) is False:
                    stats.cache_failures += 1
                    logger.warning(f"⚠️ {hall_ticket} saved but not cached")
                stats.success += 1
                logger.info(f"✅ {hall_ticket} ({record.status})")

            except InvalidHallTicket as e:
                stats.rejected += 1
                logger.warning(f"Rejected malformed hall ticket: {e}")

            except ParseIncomplete:
                stats.not_found += 1
                stats.parse_incomplete += 1

            except StoreUnavailable:
                logger.error(f"❌ Database unreachable at {hall_ticket}. Aborting chunk. Stats so far: {stats.to_dict()}")
                raise

            except SoftTimeLimitExceeded:
                logger.error(f"⏱️ Time limit reached at {hall_ticket}. Stats so far: {stats.to_dict()}")
                raise

            except FetchFailed as e:
                stats.failed.append(hall_ticket)
                logger.warning(f"⚠️ {e}")

            except Exception as e:
                stats.failed.append(hall_ticket)
                logger.error(f"Error processing {hall_ticket}: {e}", exc_info=True)

        logger.info(f"Chunk Complete. Metrics: {stats.to_dict()}")
        return stats

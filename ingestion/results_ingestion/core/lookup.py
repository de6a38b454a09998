import logging
from dataclasses import dataclass
from typing import Literal, Optional

from ingestion.results_ingestion.core.exceptions import (
    FetchFailed, InvalidHallTicket, PersistenceError, ResultsTemporarilyUnavailable
)
from ingestion.results_ingestion.core.hall_tickets import validate_hall_ticket
from ingestion.results_ingestion.core.records import ResultRecord
from ingestion.results_ingestion.core.result_cache import ResultCache
from ingestion.results_ingestion.core.result_store import ResultStore
from ingestion.results_ingestion.core.scraper import ResultScraper

logger = logging.getLogger(__name__)

LookupSource = Literal["cache", "database", "live", "not_found"]


@dataclass(frozen=True)
class LookupResult:
    source: LookupSource
    record: Optional[ResultRecord] = None

    @property
    def found(self) -> bool:
        return self.record is not None


class TieredResultLookup:
    """
    Read path: cache -> database -> one live fetch.

    GUARANTEES:
    - Cache hit: no database query.
    - Database hit: no live fetch; cache is read-repaired with a short TTL.
    - Double miss: exactly one live fetch; success is persisted (which seeds the cache).
    - Portal unreachable: ResultsTemporarilyUnavailable, never 'not found'.
    """

    def __init__(
        self,
        cache: ResultCache,
        store: ResultStore,
        scraper: ResultScraper,
        exam_code: str,
        read_repair_ttl: int = 3600,
    ):
        self.cache = cache
        self.store = store
        self.scraper = scraper
        self.exam_code = exam_code
        self.read_repair_ttl = read_repair_ttl

    def lookup(self, hall_ticket: str) -> LookupResult:
        try:
            hall_ticket = validate_hall_ticket(hall_ticket)
        except InvalidHallTicket:
            return LookupResult(source="not_found")

        # 1. Cache
        cached = self.cache.get(hall_ticket)
        if cached is not None:
            return LookupResult(source="cache", record=cached)

        # 2. Database (+ read-repair)
        stored = self.store.load(hall_ticket)
        if stored is not None:
            self.cache.set(stored, ttl_seconds=self.read_repair_ttl)
            return LookupResult(source="database", record=stored)

        # 3. Live fallback: the bulk scraper may not have reached this hall ticket yet
        try:
            live = self.scraper.fetch_and_parse(hall_ticket, self.exam_code)
        except FetchFailed as e:
            logger.warning(f"Live fetch unavailable for {hall_ticket}: {e.reason}")
            raise ResultsTemporarilyUnavailable(f"Results portal unavailable for {hall_ticket}") from e

        if live is None:
            return LookupResult(source="not_found")

        try:
            self.store.save(live)
        except PersistenceError as e:
            # The caller still gets the verified live record; the bulk run will re-ingest it
            logger.error(f"Live result for {hall_ticket} served but not persisted: {e}")
        return LookupResult(source="live", record=live)

import logging
from typing import Optional

import redis
import requests
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.config import Settings
from app.database import build_engine, build_session_factory
from ingestion.results_ingestion.core.chunk_worker import ChunkWorker
from ingestion.results_ingestion.core.lookup import TieredResultLookup
from ingestion.results_ingestion.core.orchestrator import BatchOrchestrator
from ingestion.results_ingestion.core.result_cache import ResultCache, build_redis_client
from ingestion.results_ingestion.core.result_store import ResultStore
from ingestion.results_ingestion.core.scraper import ResultScraper, build_http_session
from ingestion.results_ingestion.core.watcher import PortalWatcher

logger = logging.getLogger(__name__)


class ServiceContainer:
    """
    Owns every process-wide client (DB engine, redis pool, HTTP session)
    and hands them to components through their constructors.
    Lifecycle: open() at process start, close() at shutdown.
    """

    def __init__(
        self,
        settings: Settings,
        engine: Engine,
        session_factory: sessionmaker,
        redis_client: Optional[redis.Redis],
        http: requests.Session,
    ):
        self.settings = settings
        self.engine = engine
        self.session_factory = session_factory
        self.redis = redis_client
        self.http = http

        self.cache = ResultCache(
            redis_client,
            ttl_seconds=settings.CACHE_TTL_SECONDS,
            enabled=settings.ENABLE_REDIS_CACHE,
        )
        self.scraper = ResultScraper(
            http,
            base_url=settings.RESULTS_BASE_URL,
            timeout=settings.scraper_timeout_seconds,
        )
        self.store = ResultStore(session_factory, cache=self.cache)
        self.lookup = TieredResultLookup(
            cache=self.cache,
            store=self.store,
            scraper=self.scraper,
            exam_code=settings.RESULTS_EXAM_CODE,
            read_repair_ttl=settings.READ_REPAIR_TTL_SECONDS,
        )
        self.orchestrator = BatchOrchestrator(session_factory)
        self.watcher = PortalWatcher(http, settings.RESULTS_BASE_URL, state=redis_client)

    @classmethod
    def open(cls, settings: Settings) -> "ServiceContainer":
        engine = build_engine(settings.DATABASE_URL, settings.DB_POOL_SIZE, settings.DB_MAX_OVERFLOW)
        redis_client = build_redis_client(settings.REDIS_URL, settings.REDIS_MAX_CONNECTIONS)
        http = build_http_session(pool_size=settings.SCRAPER_WORKER_COUNT, verify_ssl=settings.VERIFY_SSL)
        logger.info(
            f"Services ready | Redis Cache: {'enabled' if settings.ENABLE_REDIS_CACHE else 'disabled'} "
            f"| Scraper Workers: {settings.SCRAPER_WORKER_COUNT}"
        )
        return cls(settings, engine, build_session_factory(engine), redis_client, http)

    def new_worker(self) -> ChunkWorker:
        return ChunkWorker(self.scraper, self.store)

    def close(self):
        self.http.close()
        if self.redis is not None:
            self.redis.close()
            self.redis.connection_pool.disconnect()
        self.engine.dispose()
        logger.info("Services closed")

import logging
from typing import Optional

import redis
from pydantic import ValidationError

from ingestion.results_ingestion.core.records import ResultRecord

logger = logging.getLogger(__name__)


def build_redis_client(redis_url: str, max_connections: int = 20) -> redis.Redis:
    pool = redis.ConnectionPool.from_url(redis_url, max_connections=max_connections)
    return redis.Redis(connection_pool=pool)


class ResultCache:
    """
    Disposable read-through view: result:<hall_ticket> -> ResultRecord JSON.
    Never the system of record. Every failure degrades to a miss and is logged.
    """

    KEY_PREFIX = "result:"

    def __init__(self, client: Optional[redis.Redis], ttl_seconds: int = 604800, enabled: bool = True):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.enabled = enabled and client is not None

    def key_for(self, hall_ticket: str) -> str:
        return f"{self.KEY_PREFIX}{hall_ticket}"

    def get(self, hall_ticket: str) -> Optional[ResultRecord]:
        if not self.enabled:
            return None
        try:
            raw = self.client.get(self.key_for(hall_ticket))
        except redis.RedisError as e:
            logger.warning(f"Cache read failed for {hall_ticket}: {e}")
            return None

        if raw is None:
            return None
        try:
            return ResultRecord.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry for {hall_ticket}: {e}")
            return None

    def set(self, record: ResultRecord, ttl_seconds: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            self.client.set(
                self.key_for(record.hall_ticket),
                record.model_dump_json(),
                ex=ttl_seconds or self.ttl_seconds,
            )
            return True
        except redis.RedisError as e:
            logger.warning(f"Cache write failed for {record.hall_ticket}: {e}")
            return False

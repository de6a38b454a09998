from functools import lru_cache
from typing import Optional

from pydantic import ValidationError, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ingestion.results_ingestion.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    PROJECT_NAME: str = "Results Harvester"
    ENVIRONMENT: str = "development"

    # Database
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_HOST: str
    POSTGRES_PORT: int
    POSTGRES_DB: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 10

    # Redis (cache tier + celery broker)
    REDIS_HOST: str
    REDIS_PORT: int
    REDIS_PASSWORD: Optional[str] = None
    REDIS_MAX_CONNECTIONS: int = 20
    ENABLE_REDIS_CACHE: bool = True
    CACHE_TTL_SECONDS: int = 604800      # 7 days for confirmed records
    READ_REPAIR_TTL_SECONDS: int = 3600

    # Results Portal
    RESULTS_BASE_URL: str = "http://results.jntuh.ac.in/results/"
    RESULTS_EXAM_CODE: str = "1323"
    VERIFY_SSL: bool = False

    # Scraper
    SCRAPER_WORKER_COUNT: int = 10
    HALL_TICKET_START: str = "160121733001"
    HALL_TICKET_END: str = "160121733999"
    SCRAPER_DELAY_MS: int = 100
    SCRAPER_TIMEOUT_MS: int = 10000

    # API
    API_SECRET_KEY: str

    @computed_field
    @property
    def DATABASE_URL(self) -> str:
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @computed_field
    @property
    def REDIS_URL(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/0"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/0"

    @property
    def scraper_delay_seconds(self) -> float:
        return self.SCRAPER_DELAY_MS / 1000

    @property
    def scraper_timeout_seconds(self) -> float:
        return self.SCRAPER_TIMEOUT_MS / 1000

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Loads settings once per process.
    Missing required variables are fatal: callers get a ConfigurationError at startup.
    """
    try:
        return Settings()
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigurationError(f"Invalid or missing configuration: {missing}") from e

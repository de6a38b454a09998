"""
Shared fixtures: a SQLite database per test, an in-memory redis stand-in
and a scripted portal session for the scraper.
"""

from typing import Dict, List, Optional

import pytest
import redis
import requests

from app.config import Settings
from app.container import ServiceContainer
from app.database import Base, build_engine, build_session_factory
import app.models  # noqa: F401  (registers tables on Base.metadata)
from ingestion.results_ingestion.core.records import ResultRecord, SubjectMark, derive_status
from ingestion.results_ingestion.core.result_cache import ResultCache
from ingestion.results_ingestion.core.result_store import ResultStore
from ingestion.results_ingestion.core.scraper import ResultScraper

BASE_URL = "http://portal.test/results/"


class FakeRedis:
    """Dict-backed client with the subset of redis.Redis the code uses."""

    def __init__(self, fail: bool = False):
        self.data: Dict[str, bytes] = {}
        self.fail = fail
        self.set_calls: List[tuple] = []

    def get(self, key):
        if self.fail:
            raise redis.ConnectionError("redis down")
        return self.data.get(key)

    def set(self, key, value, ex=None):
        if self.fail:
            raise redis.ConnectionError("redis down")
        self.data[key] = value.encode("utf-8") if isinstance(value, str) else value
        self.set_calls.append((key, ex))
        return True

    def close(self):
        pass


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200):
        self.text = text
        self.status_code = status_code

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_status(self):
        if not self.ok:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")


class FakePortal:
    """
    Scripted stand-in for requests.Session.
    pages: hall ticket -> result HTML; errors: hall ticket -> exception to raise.
    Anything else gets the portal's 'no result' page.
    """

    def __init__(self, pages=None, errors=None, landing: str = "", status_codes=None):
        self.pages = pages or {}
        self.errors = errors or {}
        self.status_codes = status_codes or {}
        self.landing = landing
        self.posts: List[dict] = []
        self.gets: List[str] = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.posts.append({"url": url, "data": data, "timeout": timeout})
        hall_ticket = data["htno"]
        if hall_ticket in self.errors:
            raise self.errors[hall_ticket]
        status_code = self.status_codes.get(hall_ticket, 200)
        return FakeResponse(self.pages.get(hall_ticket, NO_RESULT_PAGE), status_code)

    def get(self, url, timeout=None):
        self.gets.append(url)
        if isinstance(self.landing, Exception):
            raise self.landing
        return FakeResponse(self.landing)

    def close(self):
        pass


NO_RESULT_PAGE = "<html><body><p>Invalid Hall Ticket Number</p></body></html>"


def build_result_page(
    hall_ticket: str,
    name: Optional[str] = "TEST STUDENT",
    college_code: Optional[str] = "XZ",
    subjects=(("CS101", "Programming", "28", "60", "88", "A", "3"),),
    extra_labels: Optional[Dict[str, str]] = None,
) -> str:
    info = [("Hall Ticket No", hall_ticket)]
    if name is not None:
        info.append(("Name", name))
    if college_code is not None:
        info.append(("College Code", college_code))
    for label, value in (extra_labels or {}).items():
        info.append((label, value))

    info_rows = "".join(f"<tr><td>{label}</td><td>{value}</td></tr>" for label, value in info)
    header = "".join(
        f"<th>{h}</th>"
        for h in ("Subject Code", "Subject Name", "Internal", "External", "Total", "Grade", "Credits")
    )
    mark_rows = "".join(
        "<tr>" + "".join(f"<td>{cell}</td>" for cell in row) + "</tr>"
        for row in subjects
    )
    return (
        "<html><body>"
        f"<table>{info_rows}</table>"
        f"<table><tr>{header}</tr>{mark_rows}</table>"
        "</body></html>"
    )


def make_record(hall_ticket: str = "23XZ1A0501", grades=("A", "B"), name: str = "TEST STUDENT", **fields) -> ResultRecord:
    marks = [
        SubjectMark(
            subject_code=f"CS10{i}",
            subject_name=f"Subject {i}",
            internal="25",
            external="50",
            total="75",
            grade=grade,
            credits="3",
        )
        for i, grade in enumerate(grades, start=1)
    ]
    return ResultRecord(
        hall_ticket=hall_ticket,
        name=name,
        college_code=fields.pop("college_code", "XZ"),
        status=derive_status(marks),
        marks=marks,
        **fields,
    )


@pytest.fixture
def page():
    return build_result_page


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        POSTGRES_USER="test",
        POSTGRES_PASSWORD="test",
        POSTGRES_HOST="localhost",
        POSTGRES_PORT=5432,
        POSTGRES_DB="results_test",
        REDIS_HOST="localhost",
        REDIS_PORT=6379,
        RESULTS_BASE_URL=BASE_URL,
        SCRAPER_DELAY_MS=0,
        SCRAPER_WORKER_COUNT=4,
        HALL_TICKET_START="160121733001",
        HALL_TICKET_END="160121733010",
        API_SECRET_KEY="test-key",
    )


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'results.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def failing_redis():
    return FakeRedis(fail=True)


@pytest.fixture
def cache(fake_redis):
    return ResultCache(fake_redis, ttl_seconds=604800)


@pytest.fixture
def store(session_factory, cache):
    return ResultStore(session_factory, cache=cache)


@pytest.fixture
def portal():
    return FakePortal()


@pytest.fixture
def scraper(portal):
    return ResultScraper(portal, base_url=BASE_URL, timeout=5)


@pytest.fixture
def container(settings, engine, session_factory, fake_redis, portal):
    return ServiceContainer(settings, engine, session_factory, fake_redis, portal)

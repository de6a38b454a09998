import logging
from typing import Dict, Optional
from urllib.parse import urljoin

import requests
import urllib3
from requests.adapters import HTTPAdapter

from ingestion.results_ingestion.core.exceptions import FetchFailed, ParseIncomplete
from ingestion.results_ingestion.core.hall_tickets import validate_hall_ticket
from ingestion.results_ingestion.core.page_parser import ResultPageParser
from ingestion.results_ingestion.core.records import ResultRecord

logger = logging.getLogger(__name__)


def build_http_session(pool_size: int = 10, verify_ssl: bool = False) -> requests.Session:
    """
    Connection-pooled session shared by every scraper in the process.
    No transport retries: one hall ticket = exactly one request, and the
    worker's failed list is the retry mechanism.
    """
    if not verify_ssl:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size, max_retries=0)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.verify = verify_ssl
    return session


class ResultScraper:
    """
    The Fetch-Parse Unit.
    One hall ticket -> one POST -> ResultRecord | None.
    Stateless. Never touches the database or the cache.
    """

    RESULT_ACTION = "resultAction"

    def __init__(
        self,
        session: requests.Session,
        base_url: str,
        timeout: float = 10.0,
        parser: Optional[ResultPageParser] = None,
    ):
        self.session = session
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self.parser = parser or ResultPageParser()

    def get_request_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": "ResultsHarvester/1.0",
            "Content-Type": "application/x-www-form-urlencoded",
        }

    def fetch_and_parse(
        self,
        hall_ticket: str,
        exam_code: str,
        raise_incomplete: bool = False,
    ) -> Optional[ResultRecord]:
        """
        Returns the parsed record, or None when the portal has no result.

        Raises:
            InvalidHallTicket: malformed identifier (no request is made).
            FetchFailed: connection refused / DNS failure / timeout.
            ParseIncomplete: only when raise_incomplete=True; otherwise it is
                logged and reported as None.
        """
        hall_ticket = validate_hall_ticket(hall_ticket)

        # 1. Fetch (exactly one request)
        html = self._post(hall_ticket, exam_code)
        if html is None:
            return None

        # 2. Parse
        try:
            return self.parser.parse(html, hall_ticket)
        except ParseIncomplete as e:
            logger.warning(f"PARSE_INCOMPLETE {hall_ticket}: missing {e.missing}")
            if raise_incomplete:
                raise
            return None

    def _post(self, hall_ticket: str, exam_code: str) -> Optional[str]:
        form = {"htno": hall_ticket, "exid": exam_code, "url": self.base_url}
        url = urljoin(self.base_url, self.RESULT_ACTION)
        try:
            resp = self.session.post(url, data=form, headers=self.get_request_headers(), timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise FetchFailed(hall_ticket, f"timeout after {self.timeout}s") from e
        except requests.exceptions.ConnectionError as e:
            raise FetchFailed(hall_ticket, f"connection error: {e}") from e
        except requests.exceptions.RequestException as e:
            raise FetchFailed(hall_ticket, str(e)) from e

        if not 200 <= resp.status_code < 300:
            logger.debug(f"{hall_ticket}: portal answered HTTP {resp.status_code}, treating as not found")
            return None
        return resp.text

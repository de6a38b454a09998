import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import redis
import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


class PortalWatcher:
    """
    Best-effort poller for newly published results.
    Compares the first result link on the portal landing page with the last
    one seen. No guarantee of real-time detection: a missed poll is simply
    caught by the next one.
    """

    LAST_SEEN_KEY = "watcher:last_seen"

    def __init__(
        self,
        session: requests.Session,
        base_url: str,
        state: Optional[redis.Redis] = None,
        timeout: float = 30,
    ):
        self.session = session
        self.base_url = base_url
        self.state = state
        self.timeout = timeout

    def extract_latest(self, html: str) -> Optional[str]:
        soup = BeautifulSoup(html, "html.parser")
        for link in soup.select("table a"):
            text = link.get_text(" ", strip=True)
            if text:
                return text
        return None

    def check(self) -> Dict[str, Any]:
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            resp = self.session.get(self.base_url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Watcher could not reach portal: {e}")
            return {"status": "unreachable", "latest_result": None, "changed": False, "timestamp": timestamp}

        latest = self.extract_latest(resp.text)
        changed = False
        if latest:
            changed = self._remember(latest)

        logger.info(f"🔍 Checked portal. Latest: {latest or 'No results found'} | Changed: {changed}")
        return {"status": "ok", "latest_result": latest, "changed": changed, "timestamp": timestamp}

    def _remember(self, latest: str) -> bool:
        if self.state is None:
            return False
        try:
            previous = self.state.get(self.LAST_SEEN_KEY)
            if isinstance(previous, bytes):
                previous = previous.decode("utf-8")
            if previous == latest:
                return False
            self.state.set(self.LAST_SEEN_KEY, latest)
            return previous is not None
        except redis.RedisError as e:
            logger.warning(f"Watcher state unavailable: {e}")
            return False

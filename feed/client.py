"""
HTTP client for the TenderIQ backend — the live feed plus the scraper REST API.
"""

import logging
from typing import List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from feed.models import ScrapeRun, ScrapeRunDetails
from feed.sse import FeedConnection
import config

logger = logging.getLogger(__name__)


def _make_session(token: str = "") -> requests.Session:
    """Build a requests.Session with retry logic, browser-like headers and auth."""
    session = requests.Session()

    retry = Retry(
        total=3,
        backoff_factor=1.5,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    session.headers.update(
        {
            "User-Agent": (
                "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
                "AppleWebKit/537.36 (KHTML, like Gecko) "
                "Chrome/121.0.0.0 Safari/537.36"
            ),
            "Accept-Language": "en-IN,en;q=0.9",
            "Accept": "application/json",
        }
    )
    if token:
        session.headers["Authorization"] = f"Bearer {token}"
    return session


def feed_params(run_id: Optional[str] = None, date_range: Optional[str] = None) -> dict:
    """Query string for the feed endpoint; empty values are left out."""
    params = {}
    if run_id:
        params["scrape_run_id"] = run_id
    if date_range:
        params["date_range"] = date_range
    return params


class FeedClient:
    """Talks to the backend. One instance per consumer; cheap to create."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or config.API_BASE_URL).rstrip("/")
        self.session = session or _make_session(
            config.AUTH_TOKEN if token is None else token
        )
        self.timeout = config.REQUEST_TIMEOUT

    # ── Live feed ─────────────────────────────────────────────────────────────

    def open_feed(
        self, run_id: Optional[str] = None, date_range: Optional[str] = None
    ) -> FeedConnection:
        """Create (but do not start reading) a connection to the tender feed."""
        url = self.base_url + config.FEED_PATH
        params = feed_params(run_id, date_range)
        logger.info("Connecting to tender feed: %s %s", url, params or "")
        return FeedConnection(
            self.session, url, params, connect_timeout=config.STREAM_CONNECT_TIMEOUT
        )

    # ── Scraper REST API ──────────────────────────────────────────────────────

    def get_scrape_runs(self, limit: int = 10) -> Optional[List[ScrapeRun]]:
        data = self._get_json("/scraper/scrape/runs", params={"limit": limit})
        if data is None:
            return None
        runs = [ScrapeRun.from_dict(r) for r in data.get("runs", [])]
        logger.info("Fetched %d scrape run(s)", len(runs))
        return runs

    def get_scrape_run_details(self, run_id: str) -> Optional[ScrapeRunDetails]:
        data = self._get_json(f"/scraper/scrape/runs/{run_id}")
        if data is None:
            return None
        return ScrapeRunDetails.from_dict(data)

    def trigger_scrape(
        self,
        link: str,
        source_priority: str = "normal",
        skip_dedup_check: bool = False,
    ) -> Optional[dict]:
        """Ask the backend to scrape one tender link. Returns its status reply."""
        logger.info("Triggering scrape for link: %s", link)
        return self._post_json(
            "/scraper/scrape/link",
            {
                "link": link,
                "source_priority": source_priority,
                "skip_dedup_check": skip_dedup_check,
            },
        )

    # ── Shared helpers ────────────────────────────────────────────────────────

    def _get_json(self, path: str, **kwargs) -> Optional[dict]:
        """GET with error handling; None on any failure."""
        url = self.base_url + path
        try:
            resp = self.session.get(url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            logger.warning("GET failed for %s: %s", url, exc)
        except ValueError as exc:
            logger.warning("GET %s returned invalid JSON: %s", url, exc)
        return None

    def _post_json(self, path: str, body: dict) -> Optional[dict]:
        """POST with error handling; None on any failure."""
        url = self.base_url + path
        try:
            resp = self.session.post(url, json=body, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            logger.warning("POST failed for %s: %s", url, exc)
        except ValueError as exc:
            logger.warning("POST %s returned invalid JSON: %s", url, exc)
        return None

"""Remote data clients: MapTiler raster tiles and NEA dengue clusters."""
from __future__ import annotations

import logging
import time
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

log = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 15  # seconds
_USER_AGENT = "idenguefy/0.1"


def make_session(pool_size: int = 8) -> requests.Session:
    """Session with a connection pool sized for the tile worker count."""
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=pool_size, pool_maxsize=pool_size,
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers["User-Agent"] = _USER_AGENT
    return session


def fetch_with_retry(
    url: str,
    *,
    params: Optional[dict] = None,
    timeout: float = _DEFAULT_TIMEOUT,
    retries: int = 2,
    backoff: float = 2.0,
    session: Optional[requests.Session] = None,
) -> requests.Response:
    """GET *url* with automatic retry on transient failures.

    Retries on connection errors, timeouts, and 5xx responses.
    Raises on non-retryable errors (4xx) immediately.
    """
    getter = session.get if session is not None else requests.get
    # never log query strings: the tile API key travels there
    short_url = url.split("?", 1)[0][:80]
    last_exc: Optional[Exception] = None
    for attempt in range(1, retries + 2):  # 1 initial + retries
        try:
            resp = getter(url, params=params, timeout=timeout)
            if resp.status_code < 500:
                resp.raise_for_status()
                return resp
            last_exc = requests.HTTPError(
                f"HTTP {resp.status_code} from {short_url}", response=resp,
            )
            log.warning("HTTP %d from %s (attempt %d/%d)",
                        resp.status_code, short_url, attempt, retries + 1)
        except (requests.ConnectionError, requests.Timeout) as exc:
            last_exc = exc
            log.warning("Network error on %s (attempt %d/%d): %s",
                        short_url, attempt, retries + 1, exc)

        if attempt <= retries:
            time.sleep(backoff * attempt)

    raise last_exc or requests.ConnectionError(f"Failed after {retries + 1} attempts")

"""Shared HTTP transport: a retrying requests Session with a default timeout."""

from __future__ import annotations

import logging
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from vending_core.exceptions import ExtractionError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRIES = 3
USER_AGENT = "vending-sales-core/0.1"


def make_session(
    timeout: float = DEFAULT_TIMEOUT, retries: int = DEFAULT_RETRIES
) -> requests.Session:
    """Create a requests Session with retry logic and default timeout.

    Configures the session with:
    - Retry adapter for HTTP/HTTPS with exponential backoff
    - Retries on 429, 500, 502, 503, 504 status codes (GET only)
    - Default timeout for all requests

    Args:
        timeout: Default timeout in seconds for all requests.
        retries: Number of retry attempts.

    Returns:
        Configured requests.Session object.
    """
    s = requests.Session()
    s.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=0.5,  # 0.5, 1.0, 2.0, ...
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    orig_request = s.request

    def timed_request(method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", timeout)
        return orig_request(method, url, **kwargs)

    s.request = timed_request  # type: ignore[method-assign,assignment]
    return s


def ensure_ok(resp: requests.Response, msg: str) -> None:
    """Raise ExtractionError unless the response is 2xx.

    Args:
        resp: HTTP response object to check.
        msg: Context prefixed to the error message.

    Raises:
        ExtractionError: If the response status is not 2xx.
    """
    if not resp.ok:
        raise ExtractionError(f"{msg}. HTTP {resp.status_code}: {resp.text[:300]}")


def read_json(resp: requests.Response, msg: str) -> Any:
    """Decode a JSON body, turning malformed payloads into ExtractionError."""
    try:
        return resp.json()
    except ValueError as e:
        raise ExtractionError(f"{msg}. Response is not JSON: {resp.text[:200]!r}") from e

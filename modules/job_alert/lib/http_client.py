# job_alert/http_client.py
from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import FetchError

LOG = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "PostmanRuntime/7.37.3"

_BOT_TOKEN_RE = re.compile(r"/bot[^/\s]+/")


def redact_url(url: str) -> str:
    """Hide a Telegram bot token embedded in an API URL."""
    return _BOT_TOKEN_RE.sub("/bot***REDACTED***/", url)


class HttpClient:
    """Shared HTTP client: one session per run, fixed user agent, explicit timeouts."""

    def __init__(
        self,
        timeout: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
        retries: int = 0,
    ):
        self.timeout = float(timeout)
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

        # total=0 keeps urllib3 from retrying anything on its own
        retry = Retry(
            total=max(0, int(retries)),
            backoff_factor=0.5,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset(["GET", "HEAD"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=2, pool_maxsize=4)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    # ---- convenience ----
    def get_text(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        encoding: str | None = None,
    ) -> str:
        """GET and return decoded text. Raises FetchError on network errors and non-2xx."""
        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=timeout or self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"GET {url} failed: {e!r}", url=url) from e

        if not resp.ok:
            raise FetchError(f"GET {url} returned HTTP {resp.status_code}", url=url, status=resp.status_code)
        if encoding:
            resp.encoding = encoding
        elif not resp.encoding and resp.apparent_encoding:
            resp.encoding = resp.apparent_encoding
        return resp.text

    def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        timeout: float | None = None,
    ) -> Any:
        """
        POST a JSON body and return the decoded JSON response.

        Raises FetchError on network errors, non-2xx statuses and undecodable bodies.
        The URL is redacted in every error message.
        """
        safe_url = redact_url(url)
        try:
            resp = self.session.post(url, json=dict(payload), timeout=timeout or self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"POST {safe_url} failed: {type(e).__name__}", url=safe_url) from None

        if not resp.ok:
            preview = resp.text[:200].replace("\n", " ")
            raise FetchError(
                f"POST {safe_url} returned HTTP {resp.status_code}: {preview!r}",
                url=safe_url,
                status=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            preview = resp.text[:200].replace("\n", " ")
            raise FetchError(f"JSON decode failed for {safe_url!r}; body starts: {preview!r}", url=safe_url) from e

    def close(self) -> None:
        try:
            self.session.close()
        except Exception:
            LOG.debug("HttpClient.close() swallow", exc_info=True)

    def __enter__(self) -> HttpClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

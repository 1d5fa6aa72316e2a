# job_alert/collector.py
"""
Link collection over the paginated search endpoint.

Walks page=1, 2, ... of the configured search URL and gathers the company
listing links of every result row. Pagination stops at the first of:
  - a page showing the "no results" marker (the next page is never fetched)
  - a fetch/parse failure (what was collected so far is kept)
  - a page with no result rows
  - the `max_pages` cap
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from . import logging_bridge
from .config import Settings, SiteSelectors
from .errors import FetchError, ParseError
from .http_client import HttpClient
from .models import LinkCollection, StageError

log = logging.getLogger(__name__)

PAGE_PARAM = "page"

# scheme, empty, host + first three path segments
_CANONICAL_PIECES = 6


def normalize_link(href: str, base: str | None = None) -> str:
    """
    Reduce a listing href to its canonical company path.

    Relative hrefs are resolved against `base` first, then everything past the
    sixth '/'-separated piece is dropped, e.g.
        https://jobinja.ir/companies/acme/jobs/AbC1/senior-engineer?ref=x
     -> https://jobinja.ir/companies/acme/jobs

    Idempotent: normalize_link(normalize_link(x)) == normalize_link(x).
    """
    href = (href or "").strip()
    if base:
        href = urljoin(base, href)
    return "/".join(href.split("/")[:_CANONICAL_PIECES])


def page_url(search_url: str, page: int) -> str:
    """Return `search_url` with its `page` query parameter set to `page` (other params kept)."""
    parts = urlsplit(search_url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != PAGE_PARAM]
    query.append((PAGE_PARAM, str(page)))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def parse_listing_page(html: str, base: str, selectors: SiteSelectors) -> tuple[bool, int, list[str]]:
    """
    Parse one search results page.

    Returns (no_results, rows, links). `rows` counts listing items whether or
    not they carry a usable href. When the "no results" marker is present rows
    is 0 and links is empty.
    """
    try:
        soup = BeautifulSoup(html, "html.parser")
        if soup.select_one(selectors.no_results) is not None:
            return True, 0, []
        items = soup.select(selectors.listing_item)
        anchors = [item.select_one(selectors.listing_link) for item in items]
    except Exception as e:
        raise ParseError(f"listing page {base}: {e!r}") from e

    links: list[str] = []
    for a in anchors:
        href = (a.get("href") or "").strip() if a else ""
        if href:
            links.append(normalize_link(href, base))
    return False, len(items), links


def collect_links(
    settings: Settings,
    client: HttpClient,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> LinkCollection:
    """
    Paginate the search endpoint and return the unique, normalized links in
    discovery order. Never raises for fetch/parse problems; they end pagination
    and are recorded on the returned collection.
    """
    found: dict[str, None] = {}
    result = LinkCollection()

    for page in range(1, settings.max_pages + 1):
        if page > 1 and settings.page_delay_seconds > 0:
            sleep(settings.page_delay_seconds)

        url = page_url(settings.url, page)
        try:
            html = client.get_text(url)
            result.pages_fetched += 1
            no_results, rows, page_links = parse_listing_page(html, url, settings.selectors)
        except FetchError as e:
            result.stop_reason = "fetch_failed"
            result.errors.append(StageError(stage="collect", target=url, error=str(e)))
            logging_bridge.error({
                "component": "job_alert.collector",
                "op": "fetch_page",
                "page": page,
                "url": url,
                "status": e.status,
                "error": str(e),
            })
            break
        except ParseError as e:
            result.stop_reason = "parse_failed"
            result.errors.append(StageError(stage="collect", target=url, error=str(e)))
            logging_bridge.error({
                "component": "job_alert.collector",
                "op": "parse_page",
                "page": page,
                "url": url,
                "error": str(e),
            })
            break

        if no_results:
            log.info("No more results on page %d. Stopping pagination.", page)
            result.stop_reason = "no_results"
            break

        if rows == 0:
            log.warning("Page %d has no listing rows and no 'no results' marker; stopping.", page)
            result.stop_reason = "empty_page"
            break

        if not page_links:
            log.debug("page %d: %d listing rows without links", page, rows)
            continue

        before = len(found)
        found.update(dict.fromkeys(page_links))
        log.debug("page %d: %d links (%d new)", page, len(page_links), len(found) - before)
    else:
        result.stop_reason = "max_pages"
        result.errors.append(
            StageError(stage="collect", target=settings.url, error=f"page cap of {settings.max_pages} reached")
        )
        logging_bridge.error({
            "component": "job_alert.collector",
            "op": "max_pages",
            "max_pages": settings.max_pages,
            "links": len(found),
        })

    result.links = list(found)
    logging_bridge.activity({
        "component": "job_alert.collector",
        "op": "collected",
        "pages_fetched": result.pages_fetched,
        "links": len(result.links),
        "stop_reason": result.stop_reason,
    })
    return result

# job_alert/scraper.py
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .config import Settings, SiteSelectors
from .errors import ExtractionError, FetchError, ParseError
from .http_client import HttpClient
from .models import JobRecord

log = logging.getLogger(__name__)


def matches_keywords(position: str, keywords: Iterable[str]) -> bool:
    """
    True iff the lowercased position contains at least one keyword as a substring.
    Keywords are expected to be lowercased already (Settings does that).
    """
    title = (position or "").lower()
    return any(kw and kw in title for kw in keywords)


def parse_company_page(
    html: str,
    base: str,
    keywords: Sequence[str],
    selectors: SiteSelectors,
) -> list[JobRecord]:
    """
    Extract matching (company, position, link) rows from a company listing page.
    Rows without a position or without a keyword hit are dropped.
    """
    try:
        soup = BeautifulSoup(html, "html.parser")
        rows = [
            (item.select_one(selectors.detail_company), item.select_one(selectors.detail_position))
            for item in soup.select(selectors.detail_item)
        ]
    except Exception as e:
        raise ParseError(f"company page {base}: {e!r}") from e

    records: list[JobRecord] = []
    for company_el, position_el in rows:
        company = company_el.get_text(strip=True) if company_el else ""
        position = position_el.get_text(strip=True) if position_el else ""
        if not position:
            continue
        if not matches_keywords(position, keywords):
            continue

        href = (position_el.get("href") or "").strip()
        records.append(
            JobRecord(
                company_name=company,
                position=position,
                job_link=urljoin(base, href) if href else None,
            )
        )

    return records


def scrape_link(
    link: str,
    keywords: Sequence[str],
    settings: Settings,
    client: HttpClient,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> list[JobRecord]:
    """
    Fetch one collected link and return its keyword-matching postings (possibly empty).

    Throttles with `detail_delay_seconds` before each fetch.
    Raises ExtractionError when the page cannot be fetched or parsed; the engine
    records it and moves on to the next link.
    """
    if settings.detail_delay_seconds > 0:
        sleep(settings.detail_delay_seconds)

    try:
        html = client.get_text(link)
    except FetchError as e:
        raise ExtractionError(str(e), link=link) from e

    try:
        records = parse_company_page(html, link, keywords, settings.selectors)
    except ParseError as e:
        raise ExtractionError(str(e), link=link) from e

    log.debug("scraped %s: %d matching postings", link, len(records))
    return records

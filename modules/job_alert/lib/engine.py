"""
Engine for one job_alert run: collect links, scrape company pages, render
message chunks and deliver them.

Features:
  - Strictly sequential stages (one request / one message at a time)
  - Fail-soft stages: every failure becomes a StageError on the RunReport
  - Dependency injection for testability (`client`, `notifier`, `sleep`)
  - Structured activity/error records via `logging_bridge`
"""

from __future__ import annotations

import time
from collections.abc import Callable

from . import logging_bridge, render
from .collector import collect_links
from .config import Settings
from .dates import date_line
from .errors import ExtractionError
from .http_client import HttpClient
from .models import JobRecord, RunReport, StageError
from .notifier import DryRunNotifier, TelegramNotifier, deliver
from .scraper import scrape_link
from .utils import now_iso


def _elapsed_us(t0: int) -> int:
    return int((time.perf_counter_ns() - t0) // 1000)


# =============================================================================
# MAIN ORCHESTRATOR
# =============================================================================
def run_once(
    settings: Settings,
    *,
    client: HttpClient | None = None,
    notifier: TelegramNotifier | DryRunNotifier | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunReport:
    """
    Run one complete cycle: CollectingLinks -> ScrapingDetails -> Formatting ->
    Delivering -> Done.

    Args:
        settings: Immutable run configuration.
        client: Optional HTTP client override (tests); otherwise one is created
            for this run and closed at the end.
        notifier: Optional notifier override; defaults to Telegram, or a
            dry-run notifier when `settings.dry_run` is set.
        sleep: Injectable sleep used for throttling and rate-limit pauses.

    Returns:
        RunReport with counts, the matching records and all stage errors.
    """
    start_ns = time.perf_counter_ns()
    report = RunReport(started_at=now_iso())

    if settings.skip_network:
        report.skipped = True
        logging_bridge.activity({
            "component": "job_alert.engine",
            "op": "skipped",
            "reason": "skip_network",
        })
        return report

    owns_client = client is None
    http = client or HttpClient(timeout=settings.request_timeout, user_agent=settings.user_agent)
    try:
        # ---------------------------------------------------------------------
        # COLLECTING LINKS
        # ---------------------------------------------------------------------
        t0 = time.perf_counter_ns()
        collection = collect_links(settings, http, sleep=sleep)
        report.links = len(collection.links)
        report.pages_fetched = collection.pages_fetched
        report.errors.extend(collection.errors)
        report.durations_us["collect"] = _elapsed_us(t0)

        # ---------------------------------------------------------------------
        # SCRAPING DETAILS (one link at a time)
        # ---------------------------------------------------------------------
        t0 = time.perf_counter_ns()
        records: list[JobRecord] = []
        for link in collection.links:
            try:
                records.extend(scrape_link(link, settings.keywords, settings, http, sleep=sleep))
            except ExtractionError as e:
                report.errors.append(StageError(stage="scrape", target=link, error=str(e)))
                logging_bridge.error({
                    "component": "job_alert.engine",
                    "op": "scrape_link",
                    "link": link,
                    "error": str(e),
                })
        report.records = records
        report.durations_us["scrape"] = _elapsed_us(t0)

        # ---------------------------------------------------------------------
        # FORMATTING
        # ---------------------------------------------------------------------
        if not records:
            logging_bridge.activity({
                "component": "job_alert.engine",
                "op": "no_matches",
                "links": report.links,
                "keywords": list(settings.keywords),
            })
            return report

        chunks = render.render_chunks(
            records,
            chunk_size=settings.chunk_size,
            date_label=date_line(settings.timezone, settings.date_locale),
        )
        report.chunks = len(chunks)

        # ---------------------------------------------------------------------
        # DELIVERING
        # ---------------------------------------------------------------------
        t0 = time.perf_counter_ns()
        sender = notifier or _default_notifier(settings, http)
        outcome = deliver(chunks, sender, delay_seconds=settings.send_delay_seconds, sleep=sleep)
        report.delivered = outcome.delivered
        report.failed_deliveries = outcome.failed
        report.errors.extend(outcome.errors)
        report.durations_us["deliver"] = _elapsed_us(t0)
        return report
    finally:
        if owns_client:
            http.close()
        report.durations_us["_total_us"] = _elapsed_us(start_ns)
        _log_summary(report)


def _default_notifier(settings: Settings, client: HttpClient) -> TelegramNotifier | DryRunNotifier:
    if settings.dry_run:
        return DryRunNotifier()
    return TelegramNotifier(settings.bot_token, settings.chat_id, client)


def _log_summary(report: RunReport) -> None:
    """SUMMARY LOG (always emitted): aggregated per-stage errors surface here."""
    record = {
        "component": "job_alert.engine",
        "op": "summary",
        **report.as_meta(),
    }
    if report.errors:
        logging_bridge.error(record)
    else:
        logging_bridge.activity(record)

# modules/job_alert/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .collector import collect_links, normalize_link, page_url
from .config import ConfigError, Settings, SiteSelectors
from .engine import run_once
from .errors import DeliveryError, ExtractionError, FetchError, JobAlertError, ParseError
from .models import JobRecord, RunReport, StageError
from .notifier import DryRunNotifier, TelegramNotifier, deliver
from .render import render_chunks
from .scraper import matches_keywords, scrape_link

__all__ = [
    "ConfigError",
    "DeliveryError",
    "DryRunNotifier",
    "ExtractionError",
    "FetchError",
    "JobAlertError",
    "JobRecord",
    "ParseError",
    "RunReport",
    "Settings",
    "SiteSelectors",
    "StageError",
    "TelegramNotifier",
    "collect_links",
    "deliver",
    "matches_keywords",
    "normalize_link",
    "page_url",
    "render_chunks",
    "run_once",
    "scrape_link",
]

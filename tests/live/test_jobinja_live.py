# tests/live/test_jobinja_live.py
from __future__ import annotations

import os

import pytest

from modules.job_alert.lib import collector, scraper
from modules.job_alert.lib.config import Settings
from modules.job_alert.lib.http_client import HttpClient

pytestmark = pytest.mark.live

DEFAULT_URL = "https://jobinja.ir/jobs?filters%5Bkeywords%5D%5B0%5D=python"


@pytest.fixture
def live_settings():
    return Settings.from_env_and_kwargs({
        "url": os.getenv("URL") or DEFAULT_URL,
        "keywords": os.getenv("KEYWORDS") or "python,developer,engineer",
        "max_pages": 2,
        "detail_delay_seconds": 1.0,
        "dry_run": True,
    })


def test_live_collect_and_scrape(live_settings):
    with HttpClient(timeout=live_settings.request_timeout, user_agent=live_settings.user_agent) as http:
        collection = collector.collect_links(live_settings, http)
        print(f"\n{len(collection.links)} links over {collection.pages_fetched} pages ({collection.stop_reason})")
        assert collection.pages_fetched >= 1
        assert all(link.startswith("https://") for link in collection.links)

        for link in collection.links[:3]:
            for record in scraper.scrape_link(link, live_settings.keywords, live_settings, http):
                print(f"  {record.company_name} | {record.position} | {record.job_link}")

# tests/conftest.py
import json
import os
import tempfile
import types

import pytest
from freezegun import freeze_time

from modules.job_alert.lib import config as ja_config
from modules.job_alert.lib.collector import page_url
from modules.job_alert.lib.errors import DeliveryError

SEARCH_URL = "https://jobinja.ir/jobs?filters%5Bkeywords%5D%5B0%5D=python"
BASE = "https://jobinja.ir"


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls or external services).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch, request):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    tmp_logs = tempfile.mkdtemp(prefix="ja-pytest-logs-")
    monkeypatch.setenv("LOG_DIR", tmp_logs)
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")

    # Unit tests never see the operator's job configuration
    if "live" not in request.keywords:
        for name in ("URL", "KEYWORDS", "BOT_TOKEN", "USER_ID", "TZ", "CONFIG_PATH", "JOB_ALERT_MODULE"):
            monkeypatch.delenv(name, raising=False)
        for name in [k for k in os.environ if k.startswith("JOB_ALERT_")]:
            monkeypatch.delenv(name, raising=False)

    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


# ---------------------------------------------------------------------
# Canned markup
# ---------------------------------------------------------------------
def listing_html(hrefs):
    rows = "\n".join(
        f'<li class="o-listView__item"><div class="o-listView__itemInfo"><a href="{h}">Company</a></div></li>'
        for h in hrefs
    )
    return f'<html><body><ul class="o-listView__list c-jobListView__list">{rows}</ul></body></html>'


def no_results_html():
    return '<html><body><div class="c-jobSearch__noResult">No jobs match your search.</div></body></html>'


def company_html(rows):
    """rows: iterable of (company, position, href)."""
    items = "\n".join(
        '<li class="o-listView__item"><div><div class="o-listView__itemInfo">'
        f'<h2><a href="{href}">{position}</a></h2>'
        f"<ul><li><span>{company}</span></li><li><span>Tehran</span></li></ul>"
        "</div></div></li>"
        for company, position, href in rows
    )
    return (
        '<html><body><section class="c-header"></section>'
        f'<section><ul class="o-listView__list c-jobListView__list">{items}</ul></section>'
        "</body></html>"
    )


@pytest.fixture
def pages():
    """Helpers for building canned responses keyed by URL."""
    return types.SimpleNamespace(
        search=SEARCH_URL,
        base=BASE,
        page=lambda n: page_url(SEARCH_URL, n),
        listing=listing_html,
        no_results=no_results_html,
        company=company_html,
    )


# ---------------------------------------------------------------------
# Fakes injected into the engine (no network)
# ---------------------------------------------------------------------
class FakeHttpClient:
    """
    Serves canned HTML for GET and canned JSON for POST.
    A route value that is an Exception instance is raised instead.
    """

    def __init__(self, routes=None, post_reply=None):
        self.routes = dict(routes or {})
        self.post_reply = post_reply
        self.gets = []
        self.posts = []
        self.closed = False

    def get_text(self, url, **kwargs):
        self.gets.append(url)
        value = self.routes.get(url)
        if isinstance(value, Exception):
            raise value
        if value is None:
            from modules.job_alert.lib.errors import FetchError

            raise FetchError(f"GET {url} returned HTTP 404", url=url, status=404)
        return value

    def post_json(self, url, payload, **kwargs):
        self.posts.append((url, json.loads(json.dumps(payload))))
        reply = self.post_reply
        if callable(reply):
            reply = reply(len(self.posts))
        if isinstance(reply, Exception):
            raise reply
        return reply if reply is not None else {"ok": True, "result": {"message_id": len(self.posts)}}

    def close(self):
        self.closed = True


class FakeNotifier:
    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.attempts = []
        self.sent = []

    def send(self, text):
        self.attempts.append(text)
        if len(self.attempts) in self.fail_on:
            raise DeliveryError(f"chat not reachable (message {len(self.attempts)})")
        self.sent.append(text)
        return len(self.attempts)


@pytest.fixture
def fake_client_factory():
    return FakeHttpClient


@pytest.fixture
def fake_notifier_factory():
    return FakeNotifier


@pytest.fixture
def sleeps():
    """Recording replacement for time.sleep."""
    calls = []

    def _sleep(seconds):
        calls.append(seconds)

    _sleep.calls = calls
    return _sleep


@pytest.fixture
def settings():
    return ja_config.Settings(
        url=SEARCH_URL,
        keywords=("engineer",),
        bot_token="123456:TEST-token_value",
        chat_id="42",
        detail_delay_seconds=0.0,
        send_delay_seconds=10.0,
    )


@pytest.fixture
def write_min_config(tmp_path, monkeypatch):
    cfg = {
        "timezone": "Asia/Tehran",
        "jobs": [
            {
                "id": "job-alert-hourly",
                "module": "modules.job_alert",
                "trigger": {"cron": "0 * * * *"},
                "kwargs": {"keywords": "python, django", "bot_token_env": "BOT_TOKEN"},
                "timeout_sec": 1800,
                "summary": "pytest config",
            }
        ],
    }
    p = tmp_path / "config.json"
    p.write_text(json.dumps(cfg), encoding="utf-8")
    monkeypatch.setenv("CONFIG_PATH", str(p))
    return p

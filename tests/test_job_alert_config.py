# tests/test_job_alert_config.py
import pytest

from modules.job_alert.lib.config import ConfigError, Settings, SiteSelectors
from modules.job_alert.lib.utils import chunked, split_csv

BASE_KW = {"url": "https://jobinja.ir/jobs", "bot_token": "1:abc", "chat_id": "42"}


def test_defaults():
    s = Settings.from_env_and_kwargs(BASE_KW)
    assert s.chunk_size == 12
    assert s.send_delay_seconds == 10.0
    assert s.max_pages == 100
    assert s.user_agent == "PostmanRuntime/7.37.3"
    assert s.keywords == ()


def test_kwargs_override_env(monkeypatch):
    monkeypatch.setenv("URL", "https://env.example/jobs")
    monkeypatch.setenv("USER_ID", "env-chat")
    monkeypatch.setenv("JOB_ALERT_CHUNK_SIZE", "5")

    s = Settings.from_env_and_kwargs({**BASE_KW, "chat_id": "kw-chat"})

    assert s.url == "https://jobinja.ir/jobs"
    assert s.chat_id == "kw-chat"
    assert s.chunk_size == 5


def test_keywords_are_lowercased_deduped_and_blank_dropped():
    s = Settings.from_env_and_kwargs({**BASE_KW, "keywords": " Python,python, ,Django "})
    assert s.keywords == ("python", "django")


def test_keywords_accept_lists():
    s = Settings.from_env_and_kwargs({**BASE_KW, "keywords": ["Go", "Rust"]})
    assert s.keywords == ("go", "rust")


@pytest.mark.parametrize(
    "override, match",
    [
        ({"url": ""}, "URL"),
        ({"url": "ftp://jobinja.ir"}, "http"),
        ({"chunk_size": 0}, "chunk_size"),
        ({"max_pages": "many"}, "Invalid"),
        ({"send_delay_seconds": -1}, "send_delay_seconds"),
        ({"timezone": "Mars/Olympus"}, "timezone"),
        ({"bot_token": ""}, "credentials"),
        ({"selectors": {"bogus": "div"}}, "unknown"),
    ],
)
def test_invalid_settings_raise_config_error(override, match):
    with pytest.raises(ConfigError, match=match):
        Settings.from_env_and_kwargs({**BASE_KW, **override})


def test_process_tz_is_ignored(monkeypatch):
    monkeypatch.setenv("TZ", ":/etc/localtime")
    s = Settings.from_env_and_kwargs(BASE_KW)
    assert s.timezone == "Asia/Tehran"


def test_job_alert_tz_sets_timezone(monkeypatch):
    monkeypatch.setenv("JOB_ALERT_TZ", "Europe/Berlin")
    assert Settings.from_env_and_kwargs(BASE_KW).timezone == "Europe/Berlin"

    monkeypatch.setenv("JOB_ALERT_TZ", ":/etc/localtime")
    with pytest.raises(ConfigError, match="timezone"):
        Settings.from_env_and_kwargs(BASE_KW)


def test_dry_run_does_not_need_credentials():
    s = Settings.from_env_and_kwargs({"url": "https://jobinja.ir/jobs", "dry_run": "yes"})
    assert s.dry_run is True


def test_selector_overrides_keep_other_defaults():
    sel = SiteSelectors.from_mapping({"no_results": "div.empty"})
    assert sel.no_results == "div.empty"
    assert sel.listing_item == SiteSelectors().listing_item


def test_split_csv_and_chunked():
    assert split_csv("a, b,,c") == ["a", "b", "c"]
    assert split_csv(None) == []
    assert [list(c) for c in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]
    with pytest.raises(ValueError):
        list(chunked([1], 0))

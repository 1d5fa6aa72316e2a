from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .http_client import DEFAULT_USER_AGENT
from .utils import getenv_str, split_csv, truthy


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


# -----------------------------
# Models
# -----------------------------
@dataclass(frozen=True)
class SiteSelectors:
    """
    CSS selectors for the job board markup (jobinja-style list views).

    Search results pages:
      - no_results: marker present once pagination has run past the last page
      - listing_item: every result row
      - listing_link: anchor inside a row whose href points at the company page
    Company pages:
      - detail_item: every job row of the company's own listing
      - detail_company / detail_position: text nodes inside a row
    """

    no_results: str = "div.c-jobSearch__noResult"
    listing_item: str = "ul.c-jobListView__list li"
    listing_link: str = "div.o-listView__itemInfo > a"
    detail_item: str = "section:not([class]) ul.o-listView__list.c-jobListView__list li.o-listView__item"
    detail_company: str = "div > div.o-listView__itemInfo > ul > li:nth-child(1) > span"
    detail_position: str = "div > div.o-listView__itemInfo > h2 > a"

    @classmethod
    def from_mapping(cls, raw: Any) -> SiteSelectors:
        if not raw:
            return cls()
        if not isinstance(raw, Mapping):
            raise ConfigError("'selectors' must be an object of selector overrides.")
        known = {f.name for f in fields(cls)}
        unknown = set(raw) - known
        if unknown:
            raise ConfigError(f"'selectors' has unknown field(s): {sorted(unknown)}")
        overrides = {k: str(v).strip() for k, v in raw.items()}
        empty = [k for k, v in overrides.items() if not v]
        if empty:
            raise ConfigError(f"'selectors' values cannot be empty: {sorted(empty)}")
        return replace(cls(), **overrides)


@dataclass(frozen=True)
class Settings:
    """
    Canonical configuration for one 'job_alert' run.

    Built once per run by `from_env_and_kwargs` and passed by reference to every
    stage; nothing reads the process environment after that.
    """

    url: str
    keywords: tuple[str, ...] = ()

    # Telegram
    bot_token: str = ""
    chat_id: str = ""

    # Pagination / scraping
    max_pages: int = 100
    page_delay_seconds: float = 0.0
    detail_delay_seconds: float = 0.1
    request_timeout: float = 15.0
    user_agent: str = DEFAULT_USER_AGENT
    selectors: SiteSelectors = field(default_factory=SiteSelectors)

    # Formatting / delivery
    chunk_size: int = 12
    send_delay_seconds: float = 10.0
    date_locale: str = "fa_IR"
    timezone: str = "Asia/Tehran"

    # Special-run flags
    dry_run: bool = False
    skip_network: bool = False

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None = None) -> Settings:
        """
        Build Settings from kwargs (preferred) and environment (fallback).

            url: str             | env URL          (required)
            keywords: list|str   | env KEYWORDS     comma-separated, trimmed, lowercased
            bot_token: str       | env BOT_TOKEN    (required unless dry_run/skip_network)
            chat_id: str         | env USER_ID      (required unless dry_run/skip_network)

            max_pages: int = 100              | JOB_ALERT_MAX_PAGES
            page_delay_seconds: float = 0     | JOB_ALERT_PAGE_DELAY
            detail_delay_seconds: float = 0.1 | JOB_ALERT_DETAIL_DELAY
            request_timeout: float = 15       | JOB_ALERT_TIMEOUT
            user_agent: str                   | JOB_ALERT_USER_AGENT
            chunk_size: int = 12              | JOB_ALERT_CHUNK_SIZE
            send_delay_seconds: float = 10    | JOB_ALERT_SEND_DELAY
            date_locale: str = "fa_IR"        | JOB_ALERT_DATE_LOCALE
            timezone: str = "Asia/Tehran"     | JOB_ALERT_TZ
            selectors: dict                   (per-field overrides)

            dry_run: bool = false             | JOB_ALERT_DRY_RUN
            skip_network: bool = false
        """
        kw = dict(kwargs or {})

        def pick(key: str, env: str | None, default: Any = None) -> Any:
            v = kw.get(key)
            if v is None or (isinstance(v, str) and not v.strip()):
                return getenv_str(env, default) if env else default
            return v

        url = str(pick("url", "URL", "") or "").strip()
        raw_keywords = kw.get("keywords")
        if raw_keywords is None:
            raw_keywords = getenv_str("KEYWORDS")
        keywords = tuple(dict.fromkeys(k.lower() for k in split_csv(raw_keywords)))

        try:
            settings = cls(
                url=url,
                keywords=keywords,
                bot_token=str(pick("bot_token", "BOT_TOKEN", "") or "").strip(),
                chat_id=str(pick("chat_id", "USER_ID", "") or "").strip(),
                max_pages=int(pick("max_pages", "JOB_ALERT_MAX_PAGES", 100)),
                page_delay_seconds=float(pick("page_delay_seconds", "JOB_ALERT_PAGE_DELAY", 0.0)),
                detail_delay_seconds=float(pick("detail_delay_seconds", "JOB_ALERT_DETAIL_DELAY", 0.1)),
                request_timeout=float(pick("request_timeout", "JOB_ALERT_TIMEOUT", 15.0)),
                user_agent=str(pick("user_agent", "JOB_ALERT_USER_AGENT", DEFAULT_USER_AGENT)).strip(),
                selectors=SiteSelectors.from_mapping(kw.get("selectors")),
                chunk_size=int(pick("chunk_size", "JOB_ALERT_CHUNK_SIZE", 12)),
                send_delay_seconds=float(pick("send_delay_seconds", "JOB_ALERT_SEND_DELAY", 10.0)),
                date_locale=str(pick("date_locale", "JOB_ALERT_DATE_LOCALE", "fa_IR")).strip(),
                timezone=str(pick("timezone", "JOB_ALERT_TZ", "Asia/Tehran")).strip(),
                dry_run=truthy(pick("dry_run", "JOB_ALERT_DRY_RUN", False)),
                skip_network=truthy(kw.get("skip_network")),
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigError):
                raise
            raise ConfigError(f"Invalid job_alert setting: {e}") from e

        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def _validate_settings(s: Settings) -> None:
    if not s.url:
        raise ConfigError("Missing search URL. Provide 'url' or set URL.")
    if not s.url.startswith(("http://", "https://")):
        raise ConfigError(f"Search URL must be http(s): {s.url!r}")

    if s.max_pages <= 0:
        raise ConfigError("'max_pages' must be >= 1.")
    if s.chunk_size <= 0:
        raise ConfigError("'chunk_size' must be >= 1.")
    if s.request_timeout <= 0:
        raise ConfigError("'request_timeout' must be > 0.")
    for name in ("page_delay_seconds", "detail_delay_seconds", "send_delay_seconds"):
        if getattr(s, name) < 0:
            raise ConfigError(f"'{name}' must be >= 0.")
    if not s.user_agent:
        raise ConfigError("'user_agent' cannot be empty.")
    try:
        ZoneInfo(s.timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown timezone: {s.timezone!r}") from e

    # Credentials are only needed when we will actually talk to Telegram
    if not (s.dry_run or s.skip_network) and not (s.bot_token and s.chat_id):
        raise ConfigError("Missing Telegram credentials. Set BOT_TOKEN and USER_ID (or use dry_run).")

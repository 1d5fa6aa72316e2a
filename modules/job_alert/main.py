from __future__ import annotations

from typing import Any

from .lib.config import Settings
from .lib.engine import run_once as _run_engine
from .lib.logging_bridge import activity as log_activity


def run(**kwargs: Any) -> dict[str, Any]:
    """
    Entry point for the 'job_alert' module.

    Accepts kwargs (from scheduler/runner/HTTP trigger); every key falls back
    to the environment when omitted:
      url: str               (URL)
      keywords: list | str   (KEYWORDS, comma-separated)
      bot_token: str         (BOT_TOKEN)
      chat_id: str           (USER_ID)
      max_pages: int = 100
      chunk_size: int = 12
      send_delay_seconds: float = 10
      selectors: dict        per-selector overrides

      # Special-run flags:
      dry_run: bool = False       log messages instead of sending
      skip_network: bool = False  do nothing (config smoke test)

    Returns:
      The run summary as a JSON-safe dict (runner records it as meta).

    Raises:
      ConfigError before any network I/O if the configuration is unusable.
    """
    # Build validated settings from env + kwargs
    settings = Settings.from_env_and_kwargs(kwargs)

    # Log a small start record (structured; no prints)
    log_activity({
        "component": "job_alert.main",
        "op": "start",
        "url": settings.url,
        "keywords": list(settings.keywords),
        "flags": {
            "dry_run": settings.dry_run,
            "skip_network": settings.skip_network,
        },
    })

    report = _run_engine(settings)
    return report.as_meta()

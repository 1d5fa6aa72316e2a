import glob
import json
import os
import re
import sys
import threading
import time
import types

import pytest

from modules.job_alert.lib.config import ConfigError


def _records(prefix):
    out = []
    for path in glob.glob(os.path.join(os.environ["LOG_DIR"], f"{prefix}-*.jsonl")):
        with open(path, encoding="utf-8") as f:
            out.extend(json.loads(line) for line in f if line.strip())
    return out


def test_runner_calls_module_and_records_run(frozen_utc):
    from service import runner

    result, run_id = runner.run_module_once(
        module="modules.job_alert",
        kwargs={"url": "https://jobinja.ir/jobs", "skip_network": "true"},
        trigger_type="adhoc",
    )

    assert isinstance(run_id, str) and re.match(r"^[a-f0-9]+$", run_id)
    assert result.ok is True
    assert result.meta["skipped"] is True

    runs = [r for r in _records("activity-test") if r.get("event") == "module_run"]
    assert len(runs) == 1
    assert runs[0]["run_id"] == run_id
    assert runs[0]["trigger_type"] == "adhoc"
    assert runs[0]["kwargs"]["skip_network"] is True


def test_runner_records_failure_and_reraises():
    from service import runner

    with pytest.raises(ConfigError):
        runner.run_module_once(module="modules.job_alert", kwargs={})

    errors = [r for r in _records("error-test") if r.get("event") == "module_run"]
    assert errors and errors[0]["ok"] is False
    assert errors[0]["meta"]["exception_type"] == "ConfigError"


def test_kwargs_normalization(monkeypatch):
    from service.runner import _normalize_kwargs_types

    monkeypatch.setenv("MY_BOT", "999:secret")
    out = _normalize_kwargs_types({
        "bot_token_env": "MY_BOT",
        "max_pages": "3",
        "send_delay_seconds": "2.5",
        "dry_run": "yes",
        "keywords": "1,2",
        "chat_id": "0042",
        "selectors": '{"no_results": "div.none"}',
    })

    assert out == {
        "bot_token": "999:secret",
        "max_pages": 3,
        "send_delay_seconds": 2.5,
        "dry_run": True,
        "keywords": "1,2",
        "chat_id": "0042",
        "selectors": {"no_results": "div.none"},
    }


def test_module_run_record_never_contains_bot_token(monkeypatch):
    from service import runner

    monkeypatch.setenv("MY_BOT", "999:supersecret")
    runner.run_module_once(
        module="modules.job_alert",
        kwargs={"url": "https://jobinja.ir/jobs", "skip_network": True, "bot_token_env": "MY_BOT"},
    )

    dumped = json.dumps(_records("activity-test"))
    assert "supersecret" not in dumped


def test_runner_timeout_does_not_wait_for_slow_module(monkeypatch):
    from service import runner

    release = threading.Event()
    slow = types.ModuleType("slow_job")
    slow.run = lambda **kw: release.wait(5)
    monkeypatch.setitem(sys.modules, "slow_job", slow)

    t0 = time.monotonic()
    try:
        with pytest.raises(TimeoutError):
            runner.run_module_once(module="slow_job", timeout_sec=1)
        elapsed = time.monotonic() - t0
    finally:
        release.set()

    assert elapsed < 2.5
    errors = [r for r in _records("error-test") if r.get("event") == "module_run"]
    assert errors[0]["meta"]["timeout_sec"] == 1

from datetime import datetime, timedelta, timezone

import pytest

from service import scheduler
from service.scheduler import _build_trigger, preview_trigger

UTC = timezone.utc


def test_interval_minutes():
    trig = _build_trigger({"interval": {"minutes": 30}}, "UTC")
    assert trig.interval.total_seconds() == 1800

    start = datetime(2099, 1, 1, 0, 0, 0, tzinfo=UTC)
    times = preview_trigger(trig, UTC, count=3, start=start)
    assert times == [start + timedelta(minutes=30 * n) for n in (1, 2, 3)]


def test_crontab_string_uses_scheduler_timezone():
    # every day at 09:00 Tehran time (+03:30, no DST since 2022)
    trig = _build_trigger({"cron": "0 9 * * *"}, "Asia/Tehran")

    start = datetime(2099, 1, 1, 0, 0, 0, tzinfo=UTC)
    (first,) = preview_trigger(trig, UTC, count=1, start=start)
    assert first.astimezone(UTC) == datetime(2099, 1, 1, 5, 30, 0, tzinfo=UTC)


def test_cron_object_hours_on_weekdays():
    trig = _build_trigger({"cron": {"minute": "0,30", "hour": "8-9", "day_of_week": "sat-wed"}}, "UTC")

    # 2099-01-03 is a Saturday
    start = datetime(2099, 1, 3, 7, 59, 0, tzinfo=UTC)
    times = preview_trigger(trig, UTC, count=4, start=start)
    assert [(t.hour, t.minute) for t in times] == [(8, 0), (8, 30), (9, 0), (9, 30)]


def test_cron_object_own_timezone_wins():
    trig = _build_trigger({"cron": {"hour": 9, "timezone": "Asia/Tehran"}}, "UTC")
    assert str(trig.timezone) == "Asia/Tehran"


@pytest.mark.parametrize(
    "payload",
    [
        {"date": {"run_at": "2099-01-01T00:00:00Z"}},  # one-shot triggers are not supported
        {"cron": "0 * * * *", "interval": {"minutes": 5}},  # two triggers
        {"cron": {"minute": 0, "hourly": True}},  # unknown cron field
        {"cron": "*/15 * *"},  # invalid: only 3 fields
        {"interval": {"minutes": -5}},  # invalid interval
        {"interval": {"minutes": 0}},  # zero interval
        {},  # empty
    ],
)
def test_build_trigger_invalid_inputs_raise(payload):
    with pytest.raises(ValueError):
        _build_trigger(payload, "UTC")


def test_build_scheduler_registers_valid_jobs_and_skips_broken_ones():
    cfg = {
        "timezone": "Asia/Tehran",
        "jobs": [
            {"id": "hourly", "module": "modules.job_alert", "trigger": {"cron": "0 * * * *"}},
            {"id": "broken", "module": "modules.job_alert", "trigger": {"cron": "nope"}},
        ],
    }

    sched = scheduler.build_scheduler(cfg)

    assert [j.id for j in sched.get_jobs()] == ["hourly"]
    assert str(sched.timezone) == "Asia/Tehran"


def test_invalid_timezone_falls_back_to_utc():
    sched = scheduler.build_scheduler({"timezone": "Mars/Olympus", "jobs": []})
    assert str(sched.timezone) == "UTC"


def test_job_wrapper_runs_module_through_runner(monkeypatch):
    calls = []

    def fake_run(module, **kwargs):
        calls.append((module, kwargs))
        return scheduler.runner.RunResult(ok=True, message="done"), "abc123"

    monkeypatch.setattr(scheduler.runner, "run_module_once", fake_run)
    sched = scheduler.build_scheduler({
        "jobs": [
            {
                "id": "alert",
                "module": "modules.job_alert",
                "trigger": {"interval": {"hours": 1}},
                "kwargs": {"keywords": "python"},
                "timeout_sec": 600,
            }
        ]
    })

    sched.get_job("alert").func()

    ((module, kwargs),) = calls
    assert module == "modules.job_alert"
    assert kwargs["kwargs"] == {"keywords": "python"}
    assert kwargs["trigger_type"] == "scheduled"
    assert kwargs["timeout_sec"] == 600
    assert kwargs["job_context"]["job_id"] == "alert"


def test_job_wrapper_contains_run_failures(monkeypatch):
    def boom(module, **kwargs):
        raise RuntimeError("site down")

    monkeypatch.setattr(scheduler.runner, "run_module_once", boom)
    sched = scheduler.build_scheduler({
        "jobs": [{"id": "alert", "module": "modules.job_alert", "trigger": {"interval": {"hours": 1}}}]
    })

    sched.get_job("alert").func()  # must not raise

# service/scheduler.py
from __future__ import annotations

import logging
import os
import threading
import time as _time
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from datetime import tzinfo as _dt_tzinfo
from typing import Any
from zoneinfo import ZoneInfo

import pytz
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from . import config_schema, runner

LOG = logging.getLogger(__name__)


# ---- Internal structures ----------------------------------------------------


@dataclass(frozen=True, slots=True)
class JobSpec:
    id: str
    trigger: Any  # "apscheduler.triggers.base.BaseTrigger"
    module: str
    kwargs: dict[str, Any]
    timeout_sec: int | None
    max_instances: int
    coalesce: bool
    misfire_grace_time: int | None
    summary: str | None


# ---- Public controller ------------------------------------------------------


class SchedulerController:
    """
    A small façade around APScheduler so the CLI can manage lifecycle cleanly.
    """

    def __init__(self, scheduler: BackgroundScheduler) -> None:
        self._scheduler = scheduler
        self._stopped_evt = threading.Event()

    def stop(self) -> None:
        """
        Promptly shut down APScheduler.
        """
        if self._scheduler.running:
            LOG.info("Shutting down scheduler...")
            # wait=False -> stop immediately; jobs in-flight are allowed to finish.
            self._scheduler.shutdown(wait=False)
        self._stopped_evt.set()
        LOG.info("Scheduler shut down complete.")

    def join(self, timeout: float | None = None) -> bool:
        """
        Block until the scheduler is fully stopped (or timeout).
        Returns True if stopped before timeout, else False.
        """
        return self._stopped_evt.wait(timeout=timeout)

    def get_job_ids(self) -> Iterable[str]:
        return (job.id for job in self._scheduler.get_jobs())


# ---- Module API -------------------------------------------------------------


def build_scheduler(cfg: dict[str, Any]) -> BackgroundScheduler:
    """Create a (not yet started) scheduler with every valid job from `cfg` registered."""
    tz = _resolve_timezone(cfg)

    job_defaults = {
        "coalesce": True,  # run only the latest if many were missed
        "max_instances": 1,  # a slow run must never overlap the next tick
    }
    scheduler = BackgroundScheduler(
        timezone=tz,
        job_defaults=job_defaults,
        executors={"default": ThreadPoolExecutor(_int_or(cfg.get("executor_workers"), 4))},
        jobstores={"default": MemoryJobStore()},
    )

    for raw in cfg.get("jobs", []):
        try:
            spec = _make_job_spec(raw, default_job_defaults=job_defaults, tz=tz)
        except (KeyError, TypeError, ValueError):
            LOG.exception("Skipping job due to config error: %r", raw)
            continue
        _add_job(scheduler, spec)

    return scheduler


def start(config_path: str | None = None) -> SchedulerController:
    """
    Load configuration, build an APScheduler instance, add jobs, and start.
    Returns a SchedulerController that exposes stop() and join().

    APScheduler 3.x prefers a pytz scheduler timezone; triggers may carry
    their own zoneinfo timezone.
    """
    cfg = config_schema.load_config(config_path)
    scheduler = build_scheduler(cfg)
    scheduler.start()
    LOG.info("Scheduler started with %d job(s).", len(scheduler.get_jobs()))
    return SchedulerController(scheduler)


# ---- Helpers ----------------------------------------------------------------


def preview_trigger(trigger: Any, tz: Any, count: int = 6, start: datetime | None = None) -> list[datetime]:
    """
    Return the next `count` fire times. Seeds previous_fire_time = now = `start`
    (or "now" in tz), then advances by 1µs after each hit.
    """
    now = start or datetime.now(tz=tz)
    prev = now
    times: list[datetime] = []
    for _ in range(count):
        nxt = trigger.get_next_fire_time(prev, now)
        if nxt is None:
            break
        times.append(nxt)
        prev = nxt
        now = nxt + timedelta(microseconds=1)
    return times


def _resolve_timezone(cfg: dict[str, Any]) -> Any:
    """config['timezone'], then env TZ, then UTC; always a pytz zone."""
    tz_name = cfg.get("timezone") or os.getenv("TZ") or "UTC"
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError:
        LOG.warning("Falling back to UTC timezone (invalid or missing tz '%s')", tz_name)
        return pytz.UTC


def _make_job_spec(raw: dict[str, Any], default_job_defaults: dict[str, Any], tz: Any) -> JobSpec:
    """
    Convert a raw config job dict into a normalized JobSpec + APScheduler trigger.

    Accepted trigger forms (under "trigger"):
      - {"cron": crontab string or dict of cron fields}
      - {"interval": dict with weeks/days/hours/minutes/seconds}
    """
    jid = str(raw.get("id") or raw.get("name") or _require(raw, "module"))
    module = _require(raw, "module")

    return JobSpec(
        id=jid,
        trigger=_build_trigger(_require(raw, "trigger"), tz),
        module=module,
        kwargs=dict(raw.get("kwargs") or {}),
        timeout_sec=_int_or(raw.get("timeout_sec"), None),
        max_instances=_int_or(raw.get("max_instances"), default_job_defaults.get("max_instances", 1)),
        coalesce=bool(raw.get("coalesce", default_job_defaults.get("coalesce", True))),
        misfire_grace_time=_int_or(raw.get("misfire_grace_time"), None),
        summary=raw.get("summary") or raw.get("description"),
    )


def _tz(z: Any) -> _dt_tzinfo | None:
    if not z:
        return None
    if isinstance(z, _dt_tzinfo):
        return z
    return ZoneInfo(str(z))


def _build_trigger(trig_def: dict[str, Any], tz: Any) -> Any:
    """
    Build an APScheduler trigger from a dict.

    Supported shapes:
      {"interval": {weeks|days|hours|minutes|seconds, jitter?, start_date?, end_date?, timezone?}}
      {"cron":     {second?, minute?, hour?, day?, day_of_week?, month?, jitter?, timezone?}}
      {"cron":     "*/15 * * * *"}  # crontab, scheduler tz used by default

    A trigger block's own 'timezone' wins over the scheduler tz (`tz`).
    """
    if not isinstance(trig_def, dict):
        raise ValueError("trigger spec must be a dict")

    default_tz = _tz(tz)

    present = [k for k in ("interval", "cron") if trig_def.get(k) is not None]
    if len(present) != 1:
        raise ValueError("exactly one of {'interval','cron'} must be provided")

    # ---------- INTERVAL ----------
    if present[0] == "interval":
        spec = trig_def["interval"]
        if not isinstance(spec, dict):
            raise ValueError("interval must be an object with time fields")

        allowed = {"weeks", "days", "hours", "minutes", "seconds", "jitter", "timezone", "start_date", "end_date"}
        unknown = set(spec.keys()) - allowed
        if unknown:
            raise ValueError(f"interval has unknown field(s): {sorted(unknown)}")

        def _as_int_ge0(name: str) -> int:
            if name not in spec:
                return 0
            try:
                v = int(spec[name])
            except (TypeError, ValueError) as err:
                raise ValueError(f"interval.{name} must be an integer") from err
            if v < 0:
                raise ValueError(f"interval.{name} must be >= 0")
            return v

        iv = {k: _as_int_ge0(k) for k in ("weeks", "days", "hours", "minutes", "seconds")}
        if sum(iv.values()) == 0:
            raise ValueError("interval must be greater than 0 (provide at least one nonzero time field)")

        kwargs: dict[str, Any] = {k: v for k, v in iv.items() if v}
        jitter = _as_int_ge0("jitter")
        if jitter:
            kwargs["jitter"] = jitter
        for k in ("start_date", "end_date"):
            if k in spec:
                kwargs[k] = spec[k]

        return IntervalTrigger(timezone=_tz(spec.get("timezone")) or default_tz, **kwargs)

    # ---------- CRON ----------
    cron_spec = trig_def["cron"]
    if isinstance(cron_spec, str):
        fields = cron_spec.strip().split()
        if len(fields) != 5:
            raise ValueError(f"cron string must have 5 fields (got {len(fields)}): {cron_spec!r}")
        return CronTrigger.from_crontab(cron_spec, timezone=default_tz)
    if isinstance(cron_spec, dict):
        allowed = {
            "second",
            "minute",
            "hour",
            "day",
            "day_of_week",
            "month",
            "timezone",
            "start_date",
            "end_date",
            "jitter",
        }
        unknown = set(cron_spec.keys()) - allowed
        if unknown:
            raise ValueError(f"cron has unknown field(s): {sorted(unknown)}")

        return CronTrigger(
            second=cron_spec.get("second", 0),
            minute=cron_spec.get("minute", 0),
            hour=cron_spec.get("hour", 0),
            day=cron_spec.get("day"),
            day_of_week=cron_spec.get("day_of_week"),
            month=cron_spec.get("month"),
            start_date=cron_spec.get("start_date"),
            end_date=cron_spec.get("end_date"),
            jitter=cron_spec.get("jitter"),
            timezone=_tz(cron_spec.get("timezone")) or default_tz,
        )
    raise ValueError("cron must be a crontab string or an object")


def _add_job(scheduler: BackgroundScheduler, spec: JobSpec) -> None:
    """
    Register the APScheduler job with a wrapper that logs start/finish and
    executes the module via ``runner.run_module_once()`` (which writes the
    structured run record). A failing run is logged, never propagated into
    APScheduler.
    """

    def _job_wrapper() -> None:
        started = _time.monotonic()
        LOG.info("Job[%s] starting (module=%s)", spec.id, spec.module)
        try:
            result, run_id = runner.run_module_once(
                spec.module,
                kwargs=dict(spec.kwargs),
                trigger_type="scheduled",
                job_context=_build_job_context(spec),
                timeout_sec=spec.timeout_sec,
            )
        except Exception:
            LOG.exception("Job[%s] raised an exception.", spec.id)
            return
        LOG.info(
            "Job[%s] finished in %.3fs (run_id=%s, ok=%s): %s",
            spec.id,
            _time.monotonic() - started,
            run_id,
            result.ok,
            result.message,
        )

    scheduler.add_job(
        func=_job_wrapper,
        trigger=spec.trigger,
        id=spec.id,
        name=spec.summary or spec.id,
        max_instances=spec.max_instances,
        coalesce=spec.coalesce,
        misfire_grace_time=spec.misfire_grace_time,
        replace_existing=True,
    )
    LOG.info("Registered job[%s] (module=%s, trigger=%s)", spec.id, spec.module, spec.trigger)


def _require(d: dict[str, Any], key: str) -> Any:
    if key not in d or d[key] in (None, ""):
        raise ValueError(f"Missing required key: {key}")
    return d[key]


def _int_or(v: Any, default: int | None) -> int | None:
    """Return int(v) or default if v is None/invalid (lenient for config)."""
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError):
        return default


def _build_job_context(spec: JobSpec) -> dict[str, Any]:
    return {
        "job_id": spec.id,
        "module": spec.module,
        "now_iso": datetime.now(timezone.utc).isoformat(),
    }

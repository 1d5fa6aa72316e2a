# service/config_schema.py
from __future__ import annotations

import json
import logging
import os
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the config is invalid."""


_TRIGGER_FIELDS = ("cron", "interval")


def load_config(path: str | None = None) -> dict[str, Any]:
    """
    Load the service configuration.

    Resolution order:
      1) Explicit `path` argument (if provided)
      2) os.environ['CONFIG_PATH'] (if set)
      3) Internal default (empty config with empty jobs list)

    Returns:
        dict with at least {"jobs": [...], "timezone": "..."}.
    """
    resolved_path = path or os.environ.get("CONFIG_PATH")
    if not resolved_path:
        logger.info("CONFIG_PATH not provided; using empty default config.")
        cfg: dict[str, Any] = {"jobs": []}
    else:
        cfg = _read_any(resolved_path)

    _apply_top_level_defaults(cfg)
    return cfg


def validate(cfg: dict[str, Any]) -> None:
    """
    Validate the configuration. Raise ConfigError on any problem.
    No prints, no sys.exit().
    """
    if not isinstance(cfg, dict):
        raise ConfigError("Config must be a dict.")

    jobs = cfg.get("jobs")
    if jobs is None:
        raise ConfigError("Missing required top-level 'jobs' list.")
    if not isinstance(jobs, list):
        raise ConfigError("'jobs' must be a list.")

    tz = cfg.get("timezone")
    if tz is not None and not isinstance(tz, str):
        raise ConfigError("'timezone' must be a string if provided.")

    seen_ids: set[str] = set()
    for idx, job in enumerate(jobs):
        if not isinstance(job, dict):
            raise ConfigError(f"Job at index {idx} must be an object/dict.")

        module = job.get("module")
        if not isinstance(module, str) or not module.strip():
            raise ConfigError(f"Job {idx}: 'module' is required and must be a non-empty string.")

        job_id = _derive_job_id(job, idx)
        if job_id in seen_ids:
            raise ConfigError(f"Duplicate job id '{job_id}'.")
        seen_ids.add(job_id)

        trigger = job.get("trigger")
        if not isinstance(trigger, dict):
            raise ConfigError(f"Job '{job_id}': 'trigger' object is required.")

        present = [k for k in _TRIGGER_FIELDS if trigger.get(k) is not None]
        if len(present) != 1:
            raise ConfigError(f"Job '{job_id}': exactly one trigger required among {', '.join(_TRIGGER_FIELDS)}.")

        trig_key = present[0]
        trig_val = trigger[trig_key]
        if trig_key == "cron" and not isinstance(trig_val, (str, dict)):
            raise ConfigError(f"Job '{job_id}': cron must be a crontab string or an object.")
        if trig_key == "interval":
            if not isinstance(trig_val, dict):
                raise ConfigError(f"Job '{job_id}': interval must be an object of time kwargs.")
            for k, v in trig_val.items():
                if k in {"weeks", "days", "hours", "minutes", "seconds", "jitter"}:
                    _to_int(v, field=f"interval.{k}", job_id=job_id, allow_zero=True)

        for n, allow_zero in (("timeout_sec", True), ("max_instances", False), ("misfire_grace_time", True)):
            if n in job:
                _to_int(job[n], field=n, job_id=job_id, allow_zero=allow_zero)

        if "coalesce" in job:
            _to_bool(job["coalesce"], field="coalesce", job_id=job_id)

        if "kwargs" in job and not isinstance(job["kwargs"], dict):
            raise ConfigError(f"Job '{job_id}': 'kwargs' must be a dict if provided.")

        for opt_str in ("summary", "description"):
            if opt_str in job and not isinstance(job[opt_str], str):
                raise ConfigError(f"Job '{job_id}': '{opt_str}' must be a string if provided.")


def _apply_top_level_defaults(cfg: dict[str, Any]) -> None:
    if "jobs" not in cfg or not isinstance(cfg["jobs"], list):
        cfg["jobs"] = []

    # Resolve timezone now so scheduler can use cfg['timezone']
    tz = cfg.get("timezone")
    if not isinstance(tz, str) or not tz.strip():
        cfg["timezone"] = os.environ.get("TZ", "UTC")

    normalized_jobs: list[dict[str, Any]] = []
    for idx, job in enumerate(cfg["jobs"]):
        if not isinstance(job, dict):
            raise ConfigError(f"Job at index {idx} must be an object/dict.")

        job_copy = dict(job)
        job_copy["id"] = _derive_job_id(job_copy, idx)

        if "coalesce" in job_copy:
            job_copy["coalesce"] = _to_bool(job_copy["coalesce"], field="coalesce", job_id=job_copy["id"])
        for n, allow_zero in (("timeout_sec", True), ("max_instances", False), ("misfire_grace_time", True)):
            if n in job_copy:
                job_copy[n] = _to_int(job_copy[n], field=n, job_id=job_copy["id"], allow_zero=allow_zero)

        normalized_jobs.append(job_copy)

    cfg["jobs"] = normalized_jobs


def _derive_job_id(job: dict[str, Any], idx: int) -> str:
    # id | name | module → id
    for key in ("id", "name", "module"):
        v = job.get(key)
        if isinstance(v, str) and v.strip():
            return v.strip()
    return f"job_{idx}"


def _to_bool(value: Any, *, field: str, job_id: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v in {"1", "true", "yes", "on"}:
            return True
        if v in {"0", "false", "no", "off"}:
            return False
    raise ConfigError(f"Job '{job_id}': '{field}' must be a boolean (or boolean-like string).")


def _to_int(value: Any, *, field: str, job_id: str, allow_zero: bool) -> int:
    try:
        iv = int(value)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"Job '{job_id}': '{field}' must be an integer.") from err
    if iv < 0 or (iv == 0 and not allow_zero):
        raise ConfigError(f"Job '{job_id}': '{field}' must be >= {'0' if allow_zero else '1'} (got {iv}).")
    return iv


def _read_any(path: str) -> dict[str, Any]:
    lower = path.lower()
    try:
        with open(path, encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {path}: {e}") from e

    if lower.endswith(".yml") or lower.endswith(".yaml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            data = {}
    else:
        # .json, and JSON as the fallback for unknown extensions
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level config in {path} must be a mapping/object.")
    return data

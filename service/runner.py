# service/runner.py
from __future__ import annotations

import importlib
import json
import logging
import os
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from service.logging_utils import write_activity_log, write_error_log

DEFAULT_MODULE = "modules.job_alert"

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def now_iso() -> str:
    return datetime.now(timezone.utc).astimezone().isoformat(timespec="seconds")


def _maybe_bool(v: Any) -> Any:
    if isinstance(v, str):
        low = v.strip().lower()
        if low in ("true", "t", "yes", "y"):
            return True
        if low in ("false", "f", "no", "n"):
            return False
    return v


def _maybe_number(v: Any) -> Any:
    if isinstance(v, str):
        s = v.strip()
        if s and (s.isdigit() or (s.startswith("-") and s[1:].isdigit())):
            return int(s)
        try:
            return float(s)
        except ValueError:
            pass
    return v


def _normalize_kwargs_types(kwargs: dict[str, object] | None) -> dict[str, object]:
    """
    Normalize job kwargs right before module.run(**kwargs):

      • Keys ending with "_env": the string value is an ENV VAR NAME; it is
        replaced by os.getenv(<name>, "") and stored under the key WITHOUT
        the suffix (e.g. {"bot_token_env": "MY_BOT"} -> {"bot_token": "..."}).
        Secrets can then live in the environment, never in config files.

      • All other string values: JSON-looking strings ({...} / [...]) are
        decoded, then common bool/number forms are coerced.
        Identifier-like values (chat_id, bot_token, url, keywords, ...) stay strings.
    """
    if not kwargs:
        return {}

    keep_str = {"chat_id", "bot_token", "url", "user_agent", "keywords"}
    normalized: dict[str, object] = {}
    for k, v in kwargs.items():
        if isinstance(k, str) and k.endswith("_env") and isinstance(v, str):
            normalized[k[: -len("_env")]] = os.getenv(v.strip(), "")
            continue

        if not isinstance(v, str) or k in keep_str:
            normalized[k] = v
            continue

        s = v.strip()
        if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
            try:
                normalized[k] = json.loads(s)
                continue
            except json.JSONDecodeError:
                pass
        normalized[k] = _maybe_number(_maybe_bool(s))

    return normalized


def _resolve_callable(module_path: str) -> Callable[..., Any]:
    """Import module and return its `run` callable."""
    mod = importlib.import_module(module_path)
    if not hasattr(mod, "run") or not callable(mod.run):
        raise AttributeError(f"Module {module_path!r} does not define a callable `run(**kwargs)`.")
    return mod.run  # type: ignore[no-any-return]


def _emit(record: dict[str, Any], *, failed: bool) -> None:
    """Write the structured run record; a broken log sink must not fail the run."""
    try:
        (write_error_log if failed else write_activity_log)(record)
    except OSError as e:
        log.warning("JSONL run record could not be written: %s", e)


@dataclass
class RunResult:
    ok: bool
    message: str
    meta: dict[str, Any] | None = None


def _coerce_result(value: Any) -> RunResult:
    """
    Normalize a module return into a RunResult.

    Acceptable shapes:
      - None        -> no output
      - dict        -> meta (may include 'message' and 'ok')
      - str         -> message
    """
    if value is None:
        return RunResult(ok=True, message="OK")
    if isinstance(value, dict):
        return RunResult(ok=bool(value.get("ok", True)), message=str(value.get("message", "OK")), meta=value)
    if isinstance(value, str):
        return RunResult(ok=True, message=value)
    raise TypeError("Module return must be one of: None, dict, str")


# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------
def run_module_once(
    module: str = DEFAULT_MODULE,
    kwargs: dict[str, object] | None = None,
    trigger_type: str = "scheduled",
    job_context: dict[str, object] | None = None,  # e.g., {"job_id": "...", "now_iso": "..."}
    timeout_sec: int | None = None,
) -> tuple[RunResult, str]:
    """
    Execute a module's run(**kwargs) once and write one structured run record.

    Returns:
        (RunResult, run_id)
    Raises:
        Propagates exceptions from module execution (caller decides how to report).
    """
    run_id = uuid.uuid4().hex
    context: dict[str, Any] = {
        "run_id": run_id,
        "module": module,
        "trigger_type": trigger_type,
        "started_at": now_iso(),
    }
    if job_context:
        context.update({k: v for k, v in job_context.items() if k not in context})

    kw = _normalize_kwargs_types(kwargs)
    run_callable = _resolve_callable(module)

    result: RunResult
    exc: BaseException | None = None

    t0 = datetime.now()
    # a timed-out module keeps its worker thread; do not block on it
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="runner")
    try:
        fut = pool.submit(run_callable, **kw)
        value = fut.result(timeout=timeout_sec) if timeout_sec else fut.result()
        result = _coerce_result(value)
    except FutureTimeout:
        exc = TimeoutError(f"Module run timed out after {timeout_sec}s")
        result = RunResult(ok=False, message=str(exc), meta={"timeout_sec": timeout_sec})
    except Exception as e:
        exc = e
        result = RunResult(ok=False, message=str(e), meta={"exception_type": type(e).__name__})
    finally:
        pool.shutdown(wait=False, cancel_futures=True)
    duration_ms = int((datetime.now() - t0).total_seconds() * 1000)

    record: dict[str, Any] = {
        "ts": now_iso(),
        "event": "module_run",
        "run_id": run_id,
        "module": module,
        "trigger_type": trigger_type,
        "ok": result.ok,
        "message": result.message,
        "duration_ms": duration_ms,
        "context": context,
        "kwargs": kw,
        "meta": result.meta or {},
    }
    _emit(record, failed=exc is not None)

    if exc:
        raise exc

    log.info("Run %s (%s) finished in %d ms: %s", run_id, module, duration_ms, result.message)
    return result, run_id

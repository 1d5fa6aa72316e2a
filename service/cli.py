# service/cli.py
"""
User-facing command-line entrypoints for the container.

Subcommands
-----------
run [MODULE] [--kwargs k=v ...] [--dry-run]
    - Executes a module once via runner.run_module_once(...)
    - Prints the module's result (run report) as JSON

trigger
    - Same work as the HTTP endpoint: run the job module once and print
      {"datetime": ...}

serve
    - Starts the APScheduler service loop via service.scheduler.start()
    - Blocks until SIGINT/SIGTERM, then shuts the scheduler down

serve-http [--host HOST] [--port PORT]
    - Serves the FastAPI trigger app (service.http_trigger) with uvicorn

list-jobs
    - Loads config via config_schema.load_config() and prints configured jobs

validate-config
    - Loads/validates config and returns nonzero on error
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import uvicorn

from service import config_schema as _config_schema
from service import http_trigger as _http
from service import logging_utils as L
from service import runner as _runner
from service import scheduler as _scheduler

LOG = logging.getLogger("service.cli")


# ----------------------------- Logging setup ---------------------------------
def _ensure_logging() -> None:
    """Initialize a reasonable logging setup if none exists yet."""
    root = logging.getLogger()
    if not root.handlers:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


# -------------------------- Utility / glue code ------------------------------
def _parse_kv_pairs(pairs: Iterable[str]) -> dict[str, Any]:
    """
    Parse key=value strings into a dict.
    - Values that look like JSON (true/false/null/number/object/array) are parsed.
    - Otherwise keep as raw strings.
    """
    out: dict[str, Any] = {}
    for raw in pairs:
        if "=" not in raw:
            raise argparse.ArgumentTypeError(f"--kwargs item must be key=value (got {raw!r})")
        k, v = raw.split("=", 1)
        k = k.strip()
        v = v.strip()
        if not k:
            raise argparse.ArgumentTypeError(f"Invalid key in --kwargs item {raw!r}")
        try:
            out[k] = json.loads(v)
        except json.JSONDecodeError:
            out[k] = v
    return out


def _print_table(rows: Iterable[tuple[str, str]], headers: tuple[str, str] = ("ID", "DETAILS")) -> None:
    """Very simple two-column table printer."""
    rows = list(rows)
    w0 = max(len(headers[0]), *(len(r[0]) for r in rows)) if rows else len(headers[0])
    w1 = max(len(headers[1]), *(len(r[1]) for r in rows)) if rows else len(headers[1])
    sep = f"+-{'-' * w0}-+-{'-' * w1}-+"
    print(sep)
    print(f"| {headers[0].ljust(w0)} | {headers[1].ljust(w1)} |")
    print(sep)
    for c0, c1 in rows:
        print(f"| {c0.ljust(w0)} | {c1.ljust(w1)} |")
    print(sep)


def _extract_jobs_from_config(cfg: dict[str, Any]) -> list[tuple[str, str]]:
    out = []
    for idx, j in enumerate(cfg.get("jobs") or []):
        jid = str(j.get("id") or j.get("name") or idx)
        desc = j.get("summary") or j.get("description") or json.dumps(j.get("trigger"), default=str)
        out.append((jid, f"{j.get('module')}: {desc}"))
    return out


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat()


# ------------------------------ Subcommands ----------------------------------
def cmd_validate_config(args: argparse.Namespace) -> int:
    try:
        cfg = _config_schema.load_config(args.config)
        _config_schema.validate(cfg)
    except _config_schema.ConfigError as e:
        LOG.error("Configuration validation failed: %s", e)
        print(f"ERROR: configuration invalid: {e}", file=sys.stderr)
        return 1
    print("OK: configuration is valid.")
    return 0


def cmd_list_jobs(args: argparse.Namespace) -> int:
    try:
        cfg = _config_schema.load_config(args.config)
    except _config_schema.ConfigError as e:
        print(f"ERROR: failed to list jobs: {e}", file=sys.stderr)
        return 1
    rows = _extract_jobs_from_config(cfg)
    if not rows:
        print("No jobs found in config.")
        return 0
    _print_table(rows, headers=("JOB", "DETAILS"))
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Exit code 0 when the run finished without stage errors, 1 otherwise."""
    kwargs = _parse_kv_pairs(args.kwargs or [])
    if args.dry_run:
        kwargs["dry_run"] = True
    LOG.debug("Run module %s with kwargs=%s", args.module, kwargs)

    try:
        result, run_id = _runner.run_module_once(
            module=args.module,
            kwargs=kwargs,
            trigger_type="adhoc",
        )
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        print(f"FAILURE: {e}", file=sys.stderr)
        return 1

    print(json.dumps(result.meta or {"message": result.message}, ensure_ascii=False, indent=2, default=str))
    print(f"{'DONE' if result.ok else 'DONE WITH ERRORS'}: {result.message} (run_id={run_id})")
    return 0 if result.ok else 1


def cmd_trigger(args: argparse.Namespace) -> int:
    print(json.dumps(_http.cron()))
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """
    Run the scheduler loop until a termination signal is received.
    """
    L.write_activity_log({"ts": _now_iso(), "event": "serve_start"})
    stop_event = threading.Event()

    def _graceful_shutdown(signum=None, frame=None):
        LOG.info("Signal %s received; initiating shutdown...", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _graceful_shutdown)

    try:
        controller = _scheduler.start(config_path=args.config)
    except _config_schema.ConfigError as e:
        LOG.error("Cannot start scheduler: %s", e)
        return 1

    try:
        while not stop_event.wait(timeout=0.3):
            pass
    except KeyboardInterrupt:
        return 130
    finally:
        controller.stop()
        controller.join(timeout=10.0)
        L.write_activity_log({"ts": _now_iso(), "event": "serve_stop"})
    return 0


def cmd_serve_http(args: argparse.Namespace) -> int:
    uvicorn.run(
        "service.http_trigger:app",
        host=args.host,
        port=args.port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
    return 0


# ------------------------------- Argparse ------------------------------------
def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="python -m service.cli",
        description="Job alert service command-line tools",
    )
    p.add_argument(
        "--config",
        help="Path to config file (fallbacks to CONFIG_PATH env).",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("run", help="Execute a module once via runner.run_module_once().")
    sp.add_argument(
        "module",
        nargs="?",
        default=_runner.DEFAULT_MODULE,
        help=f"Module path to run (default: {_runner.DEFAULT_MODULE}).",
    )
    sp.add_argument(
        "--kwargs",
        metavar="k=v",
        nargs="*",
        help="Extra keyword arguments for the module (JSON values supported).",
    )
    sp.add_argument(
        "--dry-run",
        action="store_true",
        help="Do everything except actually send Telegram messages.",
    )
    sp.set_defaults(func=cmd_run)

    sp = sub.add_parser("trigger", help="Run the job like the HTTP endpoint and print the timestamp.")
    sp.set_defaults(func=cmd_trigger)

    sp = sub.add_parser("serve", help="Run the scheduler loop.")
    sp.set_defaults(func=cmd_serve)

    sp = sub.add_parser("serve-http", help="Serve the /api/cron HTTP trigger.")
    sp.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    sp.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    sp.set_defaults(func=cmd_serve_http)

    sp = sub.add_parser("list-jobs", help="Print all jobs from config.")
    sp.set_defaults(func=cmd_list_jobs)

    sp = sub.add_parser("validate-config", help="Verify configuration correctness.")
    sp.set_defaults(func=cmd_validate_config)

    return p


# --------------------------------- Main --------------------------------------
def main(argv: Iterable[str] | None = None) -> int:
    _ensure_logging()
    parser = _build_parser()
    args = parser.parse_args(args=list(argv) if argv is not None else None)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

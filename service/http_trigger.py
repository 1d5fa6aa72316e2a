# service/http_trigger.py
"""
HTTP entrypoint for external cron services.

`GET|POST /api/cron` runs the job module once (blocking until delivery is
done) and answers with the invocation timestamp. The response is always 200:
the outcome of the run lives in the runner's activity/error records.
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI

from modules.job_alert.lib.utils import now_iso
from service import runner

logger = logging.getLogger(__name__)

app = FastAPI(title="job-alert", docs_url=None, redoc_url=None)


def target_module() -> str:
    return os.getenv("JOB_ALERT_MODULE") or runner.DEFAULT_MODULE


@app.get("/healthz")
def healthz() -> dict[str, bool]:
    return {"ok": True}


# Plain `def`: FastAPI runs it in its threadpool, so the blocking run never
# stalls the event loop.
@app.api_route("/api/cron", methods=["GET", "POST"])
def cron() -> dict[str, str]:
    started = now_iso()
    module = target_module()
    try:
        result, run_id = runner.run_module_once(module, trigger_type="http")
        logger.info("cron run %s finished (ok=%s): %s", run_id, result.ok, result.message)
    except Exception:
        logger.exception("cron run of %s failed", module)
    return {"datetime": started}

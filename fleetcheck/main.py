# fleetcheck/main.py
from __future__ import annotations

import logging
import os
from pathlib import Path

from fastapi import FastAPI
from dotenv import load_dotenv, find_dotenv

# ---------------------------
# Env loading (root .env first, then fleetcheck/.env as fallback)
# ---------------------------
load_dotenv(find_dotenv(usecwd=True))
load_dotenv(Path(__file__).resolve().parent / ".env", override=False)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("fleetcheck")

# --- DB engine (must be imported BEFORE create_all) ---
from fleetcheck.db.session import engine  # noqa: E402
from fleetcheck.models import Base  # noqa: E402  (registers every table)

from fleetcheck.api import health  # noqa: E402
from fleetcheck.api.v1 import checklist_responses, jobs, kpis, non_conformities, templates  # noqa: E402
from fleetcheck.core.errors import register_exception_handlers  # noqa: E402
from fleetcheck.middleware.request_logging import RequestLoggingMiddleware  # noqa: E402
from fleetcheck.worker.scheduler import make_scheduler  # noqa: E402

# ---------------------------
# CREATE TABLES (dev-only; guard with env)
# ---------------------------
if os.getenv("ENABLE_CREATE_ALL", "1") == "1":
    Base.metadata.create_all(bind=engine)

# ---------------------------
# APP
# ---------------------------
app = FastAPI(
    title="fleetcheck",
    version="1.0.0",
    description="Checklist periodicity compliance and non-conformity analytics for fleets",
)

register_exception_handlers(app)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(checklist_responses.router, prefix="/api/v1", tags=["checklists"])
app.include_router(templates.router, prefix="/api/v1", tags=["templates"])
app.include_router(non_conformities.router, prefix="/api/v1", tags=["non_conformities"])
app.include_router(kpis.router, prefix="/api/v1", tags=["kpi"])
app.include_router(jobs.router, prefix="/api/v1", tags=["jobs"])
app.include_router(health.router, prefix="/api", tags=["health"])


# ---------------------------
# Scheduler (periodicity check) – optional
# ---------------------------
@app.on_event("startup")
def _start_scheduler():
    # Enable with ENABLE_SCHEDULER=1 (default 1). Cadence configured in worker/scheduler.py via env.
    app.state.scheduler = None
    if os.getenv("ENABLE_SCHEDULER", "1") != "1":
        return
    try:
        app.state.scheduler = make_scheduler()
        app.state.scheduler.start()
    except Exception:
        # keep the API running if the scheduler cannot start
        log.exception("scheduler failed to start")
        app.state.scheduler = None


@app.on_event("shutdown")
def _stop_scheduler():
    sched = getattr(app.state, "scheduler", None)
    if sched:
        sched.shutdown(wait=False)

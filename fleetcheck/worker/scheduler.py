# fleetcheck/worker/scheduler.py
from __future__ import annotations

import logging
import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from tzlocal import get_localzone

from fleetcheck.core.timeutils import utcnow
from fleetcheck.db.session import SessionLocal
from fleetcheck.services.compliance_job import run_periodicity_check
from fleetcheck.services.kpi_cache import SqlKpiCacheStore

log = logging.getLogger("fleetcheck.scheduler")


def run_periodicity_job() -> dict:
    """
    One pass of the periodicity compliance check with a fresh session.
    Failures are logged and reported, never raised (the scheduler thread must survive).
    """
    db = SessionLocal()
    try:
        cached = run_periodicity_check(db, SqlKpiCacheStore(db), utcnow())
        return {"ok": True, "summary": cached.summary.model_dump()}
    except Exception:
        db.rollback()
        log.exception("periodicity check failed")
        return {"ok": False}
    finally:
        db.close()


def make_scheduler() -> BackgroundScheduler:
    """
    Create a BackgroundScheduler configured from env:
      - APP_TIMEZONE               (default: system tz via tzlocal)
      - PERIODICITY_CHECK_MINUTES  (default: 15)
    """
    tzname = os.getenv("APP_TIMEZONE") or str(get_localzone())
    every = max(1, int(os.getenv("PERIODICITY_CHECK_MINUTES", "15")))

    sched = BackgroundScheduler(timezone=tzname)
    sched.add_job(
        run_periodicity_job,
        CronTrigger(minute=f"*/{every}"),
        id="periodicity_check",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    log.info("scheduler ready: periodicity check every %s min (tz=%s)", every, tzname)
    return sched

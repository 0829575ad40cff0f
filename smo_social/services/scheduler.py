from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from smo_social.config import settings
from smo_social.logging_setup import log_event
from smo_social.services.memory import MemoryMonitor, MemoryMonitorConfig
from smo_social.services.options import OptionStore

def run_memory_monitoring(db_factory: Callable[[], Session]):
    db = db_factory()
    try:
        MemoryMonitor(db).perform_memory_monitoring()
    except Exception as e:
        # a failed sample must not kill the job
        log_event("memory_monitoring_failed", level="error", error=str(e), error_type=type(e).__name__)
        db.rollback()
    finally:
        db.close()

def run_memory_cleanup(db_factory: Callable[[], Session]):
    db = db_factory()
    try:
        MemoryMonitor(db).cleanup()
    finally:
        db.close()

def purge_transients(db_factory: Callable[[], Session]) -> int:
    db = db_factory()
    try:
        return OptionStore(db).purge_expired_transients()
    finally:
        db.close()

def sync_memory_jobs(sched: BackgroundScheduler, db_factory: Callable[[], Session]):
    """Re-reads the monitor config and (re)adds the memory jobs."""
    db = db_factory()
    try:
        cfg = MemoryMonitorConfig(db).get_config()
    finally:
        db.close()

    for job_id in ("memory_monitoring", "memory_cleanup"):
        if sched.get_job(job_id):
            sched.remove_job(job_id)

    if settings.memory_monitoring_enabled and cfg["monitoring_enabled"]:
        sched.add_job(
            run_memory_monitoring,
            trigger="interval",
            seconds=cfg["monitoring_interval"],
            args=[db_factory],
            id="memory_monitoring",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
    sched.add_job(
        run_memory_cleanup,
        trigger="interval",
        seconds=cfg["database_cleanup_interval"],
        args=[db_factory],
        id="memory_cleanup",
        replace_existing=True,
        max_instances=1,
    )
    log_event("memory_jobs_synced", interval=cfg["monitoring_interval"], cleanup_interval=cfg["database_cleanup_interval"])

# Global reference to scheduler for reloading
_global_scheduler = None

def start_scheduler(db_factory: Callable[[], Session]):
    global _global_scheduler
    sched = BackgroundScheduler()

    sched.add_job(
        purge_transients,
        trigger="interval",
        hours=1,
        args=[db_factory],
        id="purge_transients",
        replace_existing=True,
        max_instances=1,
    )
    sync_memory_jobs(sched, db_factory)

    sched.start()
    _global_scheduler = sched
    return sched

def reload_memory_jobs(db_factory: Callable[[], Session]):
    """Helper to refresh memory jobs when the monitor config changes."""
    if _global_scheduler:
        sync_memory_jobs(_global_scheduler, db_factory)

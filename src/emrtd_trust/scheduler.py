"""
Scheduler — periodic refresh of the trust store.

Infrastructure layer — uses APScheduler (3.x) for lightweight in-process
scheduling driven by a standard 5-field cron expression.

Each refresh runs inside a LoggingExecutionContext for structured
observability (timing, success/failure logging). A failed refresh keeps
the previously published snapshot.

Graceful shutdown: handles SIGINT/SIGTERM to stop the scheduler cleanly.
"""

from __future__ import annotations

import signal
import sys
from collections.abc import Callable

import structlog
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from railway import LoggingExecutionContext
from railway.result import Result

from emrtd_trust.domain.models import TrustSnapshot

log = structlog.get_logger()


def create_scheduler(
    refresh_fn: Callable[[], Result[TrustSnapshot]],
    cron: str = "0 3 * * *",
    run_on_startup: bool = True,
) -> BlockingScheduler:
    """
    Create a configured APScheduler that refreshes the trust store on a cron schedule.

    Args:
        refresh_fn: Zero-argument callable returning Result[TrustSnapshot] (the wired pipeline).
        cron: Standard 5-field cron expression (minute hour dom month dow).
        run_on_startup: If True, refresh once immediately before entering the loop.

    Returns:
        A configured BlockingScheduler (call .start() to begin).
    """
    scheduler = BlockingScheduler()
    ctx = LoggingExecutionContext(operation="TrustStoreRefresh")

    def _job() -> None:
        result = ctx.execute(refresh_fn)
        if result.is_success():
            snapshot = result.value()
            log.info(
                "scheduler.job_completed",
                certificates=snapshot.total_certificates,
                registry_root=snapshot.tree.root.hex(),
                rejected_sources=list(snapshot.rejected_sources),
            )
        else:
            log.error(
                "scheduler.job_failed",
                error_code=result.error().code.value,
                failure=result.error().message,
            )

    minute, hour, dom, month, dow = cron.split()
    scheduler.add_job(
        _job,
        trigger=CronTrigger(
            minute=minute,
            hour=hour,
            day=dom,
            month=month,
            day_of_week=dow,
        ),
        id="emrtd_trust_refresh",
        name="Trust store refresh",
        replace_existing=True,
    )

    if run_on_startup:
        log.info("scheduler.startup_run", message="Refreshing trust store immediately on startup")
        _job()

    _register_shutdown_signals(scheduler)

    return scheduler


def _register_shutdown_signals(scheduler: BlockingScheduler) -> None:
    """Register SIGINT and SIGTERM handlers for graceful shutdown."""

    def _shutdown(signum: int, frame: object) -> None:
        log.info("scheduler.shutdown_requested", signal=signal.Signals(signum).name)
        scheduler.shutdown(wait=False)
        sys.exit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

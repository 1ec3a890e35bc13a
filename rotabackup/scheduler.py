"""
Rotation scheduling for rotabackup.

Manages:
- Snapshot naming from the current time
- Deciding whether today is the weekly/monthly promotion day
- Repeated runs on a crontab schedule (APScheduler)
"""

import logging
from datetime import datetime
from typing import Callable

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from rotabackup.config import Config


logger = logging.getLogger(__name__)

SNAPSHOT_NAME_FORMAT = '%Y-%m-%d.%H%M%S'

WEEKDAY_NAMES = {
    1: 'Monday',
    2: 'Tuesday',
    3: 'Wednesday',
    4: 'Thursday',
    5: 'Friday',
    6: 'Saturday',
    7: 'Sunday',
}

# Global scheduler instance
scheduler = None


def snapshot_name(now: datetime) -> str:
    """Canonical snapshot name; sorts lexically in chronological order."""
    return now.strftime(SNAPSHOT_NAME_FORMAT)


def is_weekly_day(now: datetime, day_weekly: int) -> bool:
    """True if now falls on the ISO weekday (1 = Monday .. 7 = Sunday)."""
    return now.isoweekday() == day_weekly


def is_monthly_day(now: datetime, day_monthly: int) -> bool:
    """
    True if now is the given day of the month.

    A day the month does not have (e.g. 31 in April) never matches, so that
    month gets no monthly snapshot.
    """
    return now.day == day_monthly


def weekday_name(day_weekly: int) -> str:
    return WEEKDAY_NAMES.get(day_weekly, str(day_weekly))


def init_scheduler(job: Callable[[], object], cron_expression: str):
    """
    Initialize and configure APScheduler.

    Args:
        job: Callable performing one backup run
        cron_expression: Crontab expression, e.g. '30 22 * * *'

    Returns:
        Configured scheduler (not yet started)

    Raises:
        ValueError: If the crontab expression is invalid
    """
    global scheduler

    if scheduler is not None:
        return scheduler

    trigger = CronTrigger.from_crontab(cron_expression)

    job_defaults = {
        'coalesce': True,  # Combine multiple pending instances into one
        'max_instances': 1,  # Never run two backups at the same time
        'misfire_grace_time': Config.SCHEDULER_MISFIRE_GRACE_TIME
    }

    scheduler = BlockingScheduler(job_defaults=job_defaults)

    scheduler.add_job(
        func=_execute_backup_wrapper,
        args=[job],
        trigger=trigger,
        id='rotabackup',
        name=f"Backup ({cron_expression})",
        replace_existing=True
    )

    return scheduler


def run_scheduled(job: Callable[[], object], cron_expression: str):
    """
    Run the backup job on a crontab schedule until interrupted.

    Args:
        job: Callable performing one backup run
        cron_expression: Crontab expression
    """
    init_scheduler(job, cron_expression)
    logger.info(f"Scheduler starting with schedule [{cron_expression}]")
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler interrupted")
    finally:
        stop_scheduler()


def stop_scheduler():
    """Stop the APScheduler."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    scheduler = None


def _execute_backup_wrapper(job: Callable[[], object]):
    """
    Run one scheduled backup, keeping the scheduler alive on failure.

    Args:
        job: Callable performing one backup run
    """
    logger.info("Scheduler executing backup")
    try:
        result = job()
        logger.info(f"Scheduled backup completed with exit code: {getattr(result, 'exit_code', result)}")
    except Exception as e:
        logger.exception(f"Scheduled backup failed: {e}")

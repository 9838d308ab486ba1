# services/scheduler.py

import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

def create_rollover_scheduler(manager, config) -> BlockingScheduler:
    """Планировщик периодической проверки дневного сброса"""
    scheduler = BlockingScheduler(timezone=config.timezone)

    scheduler.add_job(
        manager.rollover.check_daily_reset,
        IntervalTrigger(minutes=config.scheduler.rollover_check_minutes),
        id='rollover_interval',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    if config.scheduler.midnight_check:
        scheduler.add_job(
            manager.rollover.check_daily_reset,
            CronTrigger(hour=0, minute=0, second=5),
            id='rollover_midnight',
            replace_existing=True,
            max_instances=1
        )

    if config.database.auto_backup:
        scheduler.add_job(
            manager.store.backup,
            CronTrigger(hour=3, minute=0),
            id='daily_backup',
            kwargs={'label': 'daily'},
            replace_existing=True
        )

    return scheduler

def run_scheduler(manager, config) -> None:
    """Запуск блокирующего планировщика до прерывания"""
    scheduler = create_rollover_scheduler(manager, config)
    logger.info(
        f"⏰ Rollover check every {config.scheduler.rollover_check_minutes} min "
        f"(timezone: {config.timezone})"
    )
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("👋 Планировщик остановлен")

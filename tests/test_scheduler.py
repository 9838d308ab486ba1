"""Планировщик проверки дневного сброса."""

from datetime import timedelta

from config import AppConfig
from services.scheduler import create_rollover_scheduler


def test_all_jobs_registered(manager, config_env):
    scheduler = create_rollover_scheduler(manager, AppConfig())

    jobs = {job.id: job for job in scheduler.get_jobs()}

    assert set(jobs) == {"rollover_interval", "rollover_midnight", "daily_backup"}
    assert jobs["rollover_interval"].trigger.interval == timedelta(minutes=15)
    assert jobs["daily_backup"].kwargs == {"label": "daily"}


def test_optional_jobs_can_be_disabled(manager, config_env):
    config_env(MIDNIGHT_CHECK="false", AUTO_BACKUP="false", ROLLOVER_CHECK_MINUTES=30)

    scheduler = create_rollover_scheduler(manager, AppConfig())

    jobs = scheduler.get_jobs()
    assert [job.id for job in jobs] == ["rollover_interval"]
    assert jobs[0].trigger.interval == timedelta(minutes=30)

"""Общие фикстуры: хранилище в памяти и управляемые часы."""

from datetime import datetime, timedelta

import pytest
import pytz

from config import reset_config
from core.models import Habit
from database.manager import MemoryDocumentStore
from services import ServiceManager


class MutableClock:
    """Часы, которые тест двигает вручную."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, days: int = 0, hours: int = 0, minutes: int = 0) -> None:
        self.moment = self.moment + timedelta(days=days, hours=hours, minutes=minutes)

    def set(self, year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> None:
        self.moment = pytz.UTC.localize(datetime(year, month, day, hour, minute))


@pytest.fixture
def clock():
    # Среда, 2025-01-15, полдень UTC
    return MutableClock(pytz.UTC.localize(datetime(2025, 1, 15, 12, 0)))


@pytest.fixture
def store(clock):
    store = MemoryDocumentStore(clock=clock)
    store.initialize()
    return store


@pytest.fixture
def manager(store, clock):
    return ServiceManager(store=store, clock=clock)


@pytest.fixture
def add_habit(store, clock):
    """Добавить привычку напрямую в документ, минуя сервис."""

    def _add(name: str = "Habit", **fields) -> Habit:
        habit = Habit.create(name, created_date=clock().date().isoformat())
        for key, value in fields.items():
            setattr(habit, key, value)
        store.update(lambda doc: doc.habits.append(habit))
        return habit

    return _add


@pytest.fixture
def load_habit(store):
    def _load(habit_id: str) -> Habit:
        return store.load().require_habit(habit_id)

    return _load


CONFIG_ENV = (
    'SOLOHABITS_ENV', 'DATA_DIR', 'EXPORT_DIR', 'BACKUP_DIR', 'LOG_DIR', 'TIMEZONE',
    'MAX_BACKUPS', 'AUTO_BACKUP', 'ROLLOVER_CHECK_MINUTES', 'MIDNIGHT_CHECK',
    'LOG_LEVEL', 'LOG_TO_FILE', 'LOG_FORMAT'
)


@pytest.fixture
def config_env(tmp_path, monkeypatch):
    """Окружение конфигурации внутри tmp_path; возвращает функцию установки переменных."""
    for key in CONFIG_ENV:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv('DATA_DIR', str(tmp_path / 'data'))
    monkeypatch.setenv('EXPORT_DIR', str(tmp_path / 'exports'))
    monkeypatch.setenv('BACKUP_DIR', str(tmp_path / 'backups'))
    monkeypatch.setenv('LOG_DIR', str(tmp_path / 'logs'))
    monkeypatch.setenv('LOG_TO_FILE', 'false')
    reset_config()

    def _set(**values):
        for key, value in values.items():
            monkeypatch.setenv(key, str(value))
        reset_config()

    yield _set
    reset_config()

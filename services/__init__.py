# services/__init__.py

"""
Модуль сервисов SoloHabits

Собирает хранилище, движки и сервисы в один граф зависимостей.
"""

import logging
from typing import Any, Dict, Optional

from core.achievements import AchievementEngine
from core.rollover import DailyRolloverCoordinator
from core.streaks import StreakEngine
from core.xp import XPEngine
from database.backup import BackupManager
from database.manager import DocumentStore, JsonDocumentStore
from utils.datetime_utils import Clock, make_clock

from .habit_service import HabitService, CompletionResult
from .stats_service import StatsService

logger = logging.getLogger(__name__)

class ServiceManager:
    """
    Менеджер для управления всеми сервисами

    Обеспечивает:
    - Создание движков в порядке зависимостей
    - Внедрение хранилища и часов в каждый движок
    - Инициализацию и миграцию документа при старте
    """

    def __init__(self, config=None, store: Optional[DocumentStore] = None,
                 clock: Optional[Clock] = None):
        self.config = config
        self.clock = clock or make_clock(config.timezone if config else None)

        if store is None:
            if config is None:
                raise ValueError("ServiceManager requires either a config or a store")
            backups = BackupManager(config.backup_dir, config.database.max_backups)
            store = JsonDocumentStore(config.database.path, backup_manager=backups, clock=self.clock)
        self.store = store

        self.streaks = StreakEngine(self.store, self.clock)
        self.xp = XPEngine(self.store, self.streaks, self.clock)
        self.achievements = AchievementEngine(self.store, self.clock)
        self.rollover = DailyRolloverCoordinator(
            self.store, self.streaks, self.xp, self.achievements, self.clock
        )
        self.habits = HabitService(self.store, self.streaks, self.xp, self.achievements, self.clock)
        self.stats = StatsService(self.store, self.streaks, self.clock)
        self.initialized = False

    def initialize_services(self) -> bool:
        """Инициализация документа и дневной сброс"""
        try:
            logger.info("🔧 Инициализация сервисов SoloHabits...")
            self.store.initialize()
            self.rollover.check_daily_reset()
            self.initialized = True
            logger.info("✅ Все сервисы инициализированы успешно!")
            return True

        except (OSError, ValueError) as e:
            logger.error(f"❌ Ошибка инициализации сервисов: {e}")
            return False

    def health_check(self) -> Dict[str, Any]:
        """Проверка состояния хранилища"""
        doc = self.store.load()
        return {
            "status": "healthy" if doc is not None else "error",
            "initialized": self.initialized,
            "storage": self.store.get_storage_info(),
            "habits": len(doc.habits) if doc else 0,
            "version": doc.version if doc else None
        }

    def close_services(self):
        self.initialized = False
        logger.info("🛑 Сервисы остановлены")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close_services()

__all__ = [
    'ServiceManager',
    'HabitService',
    'CompletionResult',
    'StatsService'
]

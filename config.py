#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SoloHabits - Configuration
Централизованная конфигурация с валидацией

Версия: 1.1.0
Дата: 2026-10-17
"""

import os
import sys
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass
from enum import Enum

import pytz

class Environment(Enum):
    """Среды выполнения"""
    DEVELOPMENT = "development"
    PRODUCTION = "production"

class LogLevel(Enum):
    """Уровни логирования"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

@dataclass
class DatabaseConfig:
    """Конфигурация хранилища"""
    path: Path
    backup_dir: Path
    max_backups: int = 10
    auto_backup: bool = True

@dataclass
class SchedulerConfig:
    """Конфигурация периодической проверки дневного сброса"""
    rollover_check_minutes: int = 15
    midnight_check: bool = True

def _env_flag(key: str, default: str) -> bool:
    return os.getenv(key, default).lower() == 'true'

class AppConfig:
    """Главный класс конфигурации"""

    def __init__(self):
        self._errors = []
        self._load_config()
        self._validate_config()
        self._ensure_directories()

    def _int_env(self, key: str, default: int) -> int:
        raw = os.getenv(key)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError:
            self._errors.append(f"{key} должен быть целым числом (получено {raw!r})")
            return default

    def _enum_env(self, key: str, enum_class: type, default: Enum) -> Enum:
        raw = os.getenv(key)
        if raw is None:
            return default
        try:
            return enum_class(raw)
        except ValueError:
            valid = ", ".join(e.value for e in enum_class)
            self._errors.append(f"{key}={raw!r} недопустимо (ожидается одно из: {valid})")
            return default

    def _load_config(self):
        """Загрузка конфигурации из переменных окружения"""
        self.environment = self._enum_env('SOLOHABITS_ENV', Environment, Environment.DEVELOPMENT)

        # Директории
        self.data_dir = Path(os.getenv('DATA_DIR', 'data'))
        self.export_dir = Path(os.getenv('EXPORT_DIR', 'exports'))
        self.backup_dir = Path(os.getenv('BACKUP_DIR', 'backups'))
        self.log_dir = Path(os.getenv('LOG_DIR', 'logs'))

        # Хранилище
        self.database = DatabaseConfig(
            path=self.data_dir / "solohabits_data.json",
            backup_dir=self.backup_dir,
            max_backups=self._int_env('MAX_BACKUPS', 10),
            auto_backup=_env_flag('AUTO_BACKUP', 'true')
        )

        # Время
        self.timezone = os.getenv('TIMEZONE', 'UTC')

        # Планировщик
        self.scheduler = SchedulerConfig(
            rollover_check_minutes=self._int_env('ROLLOVER_CHECK_MINUTES', 15),
            midnight_check=_env_flag('MIDNIGHT_CHECK', 'true')
        )

        # Логирование
        self.log_level = self._enum_env('LOG_LEVEL', LogLevel, LogLevel.INFO)
        self.log_to_file = _env_flag('LOG_TO_FILE', 'true')
        self.log_format = os.getenv(
            'LOG_FORMAT',
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        )

    def _validate_config(self):
        """Валидация конфигурации"""
        errors = list(self._errors)

        if self.timezone not in pytz.all_timezones_set:
            errors.append(f"TIMEZONE {self.timezone!r} не найдена в базе часовых поясов")

        if self.database.max_backups < 1:
            errors.append("MAX_BACKUPS должен быть положительным числом")

        if not 1 <= self.scheduler.rollover_check_minutes <= 1440:
            errors.append(
                f"ROLLOVER_CHECK_MINUTES {self.scheduler.rollover_check_minutes} вне диапазона (1-1440)"
            )

        if errors:
            raise ValueError("Ошибки конфигурации:\n" + "\n".join(f"• {error}" for error in errors))

    def _ensure_directories(self):
        """Создание необходимых директорий"""
        directories = [
            self.data_dir,
            self.export_dir,
            self.backup_dir
        ]
        if self.log_to_file:
            directories.append(self.log_dir)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

    def get_logging_config(self) -> Dict[str, Any]:
        """Получение конфигурации логирования"""
        handlers = ['console']
        if self.log_to_file:
            handlers.append('file')

        config = {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'default': {
                    'format': self.log_format,
                    'datefmt': '%Y-%m-%d %H:%M:%S'
                }
            },
            'handlers': {
                'console': {
                    'class': 'logging.StreamHandler',
                    'level': self.log_level.value,
                    'formatter': 'default',
                    'stream': sys.stdout
                }
            },
            'loggers': {
                '': {
                    'level': self.log_level.value,
                    'handlers': handlers,
                    'propagate': False
                },
                'apscheduler': {
                    'level': 'WARNING',
                    'handlers': handlers,
                    'propagate': False
                }
            }
        }

        if self.log_to_file:
            config['handlers']['file'] = {
                'class': 'logging.handlers.RotatingFileHandler',
                'level': self.log_level.value,
                'formatter': 'default',
                'filename': str(self.log_dir / f"solohabits_{self.environment.value}.log"),
                'maxBytes': 10485760,  # 10MB
                'backupCount': 5,
                'encoding': 'utf-8'
            }

        return config

    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация конфигурации в словарь"""
        return {
            'environment': self.environment.value,
            'data_file': str(self.database.path),
            'backup_dir': str(self.backup_dir),
            'export_dir': str(self.export_dir),
            'max_backups': self.database.max_backups,
            'auto_backup': self.database.auto_backup,
            'timezone': self.timezone,
            'rollover_check_minutes': self.scheduler.rollover_check_minutes,
            'log_level': self.log_level.value,
            'log_to_file': self.log_to_file
        }

_config: Optional[AppConfig] = None

def get_config() -> AppConfig:
    """Конфигурация создается при первом обращении"""
    global _config
    if _config is None:
        _config = AppConfig()
    return _config

def reset_config() -> None:
    global _config
    _config = None

__all__ = ['Environment', 'LogLevel', 'DatabaseConfig', 'SchedulerConfig', 'AppConfig',
           'get_config', 'reset_config']

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SoloHabits - Core Data Models
Модели документа: привычки, статистика, профиль, настройки

Версия: 1.1.0
Дата: 2026-10-17
"""

import copy
import uuid
from datetime import date
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from enum import Enum
import logging

from utils.validators import is_valid_date, is_valid_time, is_valid_weekday

logger = logging.getLogger(__name__)

XP_PER_LEVEL = 100
SCHEMA_VERSION = "1.1.0"

DEFAULT_ICON = "✨"
DEFAULT_COLOR = "#6366f1"
DEFAULT_REMINDER_TIME = "09:00"

# ===== ENUMS =====

class Frequency(Enum):
    """Частота выполнения привычки"""
    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"

class HabitFilter(Enum):
    """Фильтры списка привычек на сегодня"""
    ALL = "all"
    DAILY = "daily"
    WEEKLY = "weekly"

# ===== EXCEPTIONS =====

class ValidationError(Exception):
    """Ошибка валидации данных"""
    pass

class HabitError(Exception):
    """Базовая ошибка операций с привычками"""
    pass

class HabitNotFoundError(HabitError):
    """Привычка с указанным id не найдена"""

    def __init__(self, habit_id: str):
        super().__init__(f"Habit not found: {habit_id}")
        self.habit_id = habit_id

# ===== VALIDATION HELPERS =====

def validate_text(text: str, min_length: int = 1, max_length: int = 1000, field_name: str = "text") -> str:
    """Валидация текстовых полей"""
    if not isinstance(text, str):
        raise ValidationError(f"{field_name} must be a string")

    text = text.strip()
    if len(text) < min_length:
        raise ValidationError(f"{field_name} must contain at least {min_length} characters")

    if len(text) > max_length:
        raise ValidationError(f"{field_name} must contain at most {max_length} characters")

    return text

def validate_enum_value(value: str, enum_class: type, field_name: str = "value") -> str:
    """Валидация значений enum"""
    try:
        enum_class(value)
        return value
    except ValueError:
        valid_values = [e.value for e in enum_class]
        raise ValidationError(f"{field_name} must be one of: {valid_values}")

def validate_days(days: Any) -> List[int]:
    """Валидация дней недели (0 = воскресенье ... 6 = суббота)"""
    if days is None:
        return []
    if not isinstance(days, (list, tuple, set)):
        raise ValidationError("scheduled_days must be a list of weekday numbers")
    for day in days:
        if not is_valid_weekday(day):
            raise ValidationError(f"Invalid weekday: {day!r} (expected 0-6)")
    return sorted(set(days))

def generate_id() -> str:
    return uuid.uuid4().hex

def level_for_xp(total_xp: int) -> int:
    """Уровень по общему XP: floor(xp / 100) + 1"""
    return max(0, total_xp) // XP_PER_LEVEL + 1

# ===== CORE MODELS =====

@dataclass
class Reminder:
    """Настройка напоминания привычки"""
    enabled: bool = False
    time: str = DEFAULT_REMINDER_TIME

    def __post_init__(self):
        if not is_valid_time(self.time):
            raise ValidationError(f"Invalid reminder time: {self.time!r} (expected HH:MM)")

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "time": self.time}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Reminder":
        return cls(
            enabled=bool(data.get("enabled", False)),
            time=data.get("time", DEFAULT_REMINDER_TIME)
        )

@dataclass
class Habit:
    """Модель привычки со счетчиками серий"""
    id: str
    name: str
    description: str = ""
    icon: str = DEFAULT_ICON
    color: str = DEFAULT_COLOR
    frequency: str = Frequency.DAILY.value
    scheduled_days: List[int] = field(default_factory=list)
    enabled: bool = True
    current_streak: int = 0
    best_streak: int = 0
    last_completed_date: Optional[str] = None
    completed_dates: List[str] = field(default_factory=list)
    created_date: Optional[str] = None
    reminder: Reminder = field(default_factory=Reminder)
    order: int = 0

    def __post_init__(self):
        """Валидация после создания объекта"""
        self.frequency = validate_enum_value(self.frequency, Frequency, "frequency")
        self.scheduled_days = validate_days(self.scheduled_days)

        if self.last_completed_date is not None and not is_valid_date(self.last_completed_date):
            raise ValidationError(f"Invalid date: {self.last_completed_date}")

    # ===== COMPLETIONS =====

    def is_completed_on(self, date_str: str) -> bool:
        return date_str in self.completed_dates

    def add_completion(self, date_str: str) -> bool:
        """Добавить дату выполнения (не более одной записи на дату)"""
        if date_str in self.completed_dates:
            return False
        self.completed_dates.append(date_str)
        return True

    def remove_completion(self, date_str: str) -> bool:
        if date_str not in self.completed_dates:
            return False
        self.completed_dates = [d for d in self.completed_dates if d != date_str]
        return True

    def latest_completed_date(self) -> Optional[str]:
        return max(self.completed_dates) if self.completed_dates else None

    # ===== SERIALIZATION =====

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация в словарь"""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "color": self.color,
            "frequency": self.frequency,
            "scheduledDays": list(self.scheduled_days),
            "enabled": self.enabled,
            "currentStreak": self.current_streak,
            "bestStreak": self.best_streak,
            "lastCompletedDate": self.last_completed_date,
            "completedDates": list(self.completed_dates),
            "createdDate": self.created_date,
            "reminder": self.reminder.to_dict(),
            "order": self.order
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Habit":
        """Десериализация из словаря"""
        try:
            return cls(
                id=data["id"],
                name=data["name"],
                description=data.get("description", ""),
                icon=data.get("icon", DEFAULT_ICON),
                color=data.get("color", DEFAULT_COLOR),
                frequency=data.get("frequency", Frequency.DAILY.value),
                scheduled_days=list(data.get("scheduledDays", [])),
                enabled=data.get("enabled", True),
                current_streak=data.get("currentStreak", 0),
                best_streak=data.get("bestStreak", 0),
                last_completed_date=data.get("lastCompletedDate"),
                completed_dates=list(data.get("completedDates", [])),
                created_date=data.get("createdDate"),
                reminder=Reminder.from_dict(data.get("reminder", {})),
                order=data.get("order", 0)
            )
        except (KeyError, TypeError) as e:
            logger.error(f"Ошибка десериализации привычки: {e}")
            raise ValidationError(f"Failed to load habit: {e}")

    @classmethod
    def create(cls, name: str, created_date: str, order: int = 0,
               description: Optional[str] = None, icon: Optional[str] = None,
               color: Optional[str] = None, frequency: str = Frequency.DAILY.value,
               scheduled_days: Optional[List[int]] = None,
               reminder_enabled: bool = False,
               reminder_time: Optional[str] = None) -> "Habit":
        """Создание новой привычки"""
        return cls(
            id=generate_id(),
            name=validate_text(name, min_length=1, max_length=100, field_name="name"),
            description=(description or "").strip(),
            icon=icon or DEFAULT_ICON,
            color=color or DEFAULT_COLOR,
            frequency=frequency or Frequency.DAILY.value,
            scheduled_days=list(scheduled_days or []),
            created_date=created_date,
            reminder=Reminder(enabled=reminder_enabled, time=reminder_time or DEFAULT_REMINDER_TIME),
            order=order
        )

@dataclass
class Stats:
    """Статистика пользователя; уровень всегда выводится из XP"""
    total_xp: int = 0
    total_completed: int = 0
    perfect_weeks: int = 0

    @property
    def level(self) -> int:
        return level_for_xp(self.total_xp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalXP": self.total_xp,
            "level": self.level,
            "totalCompleted": self.total_completed,
            "perfectWeeks": self.perfect_weeks
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Stats":
        return cls(
            total_xp=max(0, int(data.get("totalXP", 0))),
            total_completed=max(0, int(data.get("totalCompleted", 0))),
            perfect_weeks=max(0, int(data.get("perfectWeeks", 0)))
        )

@dataclass
class Profile:
    """Профиль пользователя"""
    username: str = "User"
    avatar: str = "😊"
    join_date: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"username": self.username, "avatar": self.avatar, "joinDate": self.join_date}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        return cls(
            username=data.get("username", "User"),
            avatar=data.get("avatar", "😊"),
            join_date=data.get("joinDate")
        )

@dataclass
class Settings:
    """Пользовательские настройки"""
    theme: str = "system"
    font_size: str = "medium"
    notifications: bool = False
    reminder_time: str = "20:00"
    sound: bool = True

    FIELD_KEYS = {
        "theme": "theme",
        "font_size": "fontSize",
        "notifications": "notifications",
        "reminder_time": "reminderTime",
        "sound": "sound"
    }

    def __post_init__(self):
        if not is_valid_time(self.reminder_time):
            raise ValidationError(f"Invalid reminder time: {self.reminder_time!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, attr) for attr, key in self.FIELD_KEYS.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        defaults = cls()
        return cls(**{
            attr: data.get(key, getattr(defaults, attr))
            for attr, key in cls.FIELD_KEYS.items()
        })

@dataclass
class WeekRecord:
    """Недельные данные, ключ - дата начала недели"""
    perfect_week_awarded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"perfectWeekAwarded": self.perfect_week_awarded}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeekRecord":
        return cls(perfect_week_awarded=bool(data.get("perfectWeekAwarded", False)))

@dataclass
class AchievementState:
    """Вспомогательное состояние событийных достижений"""
    triggers: Dict[str, str] = field(default_factory=dict)  # trigger -> первое наблюдение (ISO)
    comeback_candidates: List[str] = field(default_factory=list)  # id привычек с прерванной серией >= 3

    def record_trigger(self, trigger: str, observed_at: str) -> bool:
        if trigger in self.triggers:
            return False
        self.triggers[trigger] = observed_at
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "triggers": dict(self.triggers),
            "comebackCandidates": list(self.comeback_candidates)
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AchievementState":
        return cls(
            triggers=dict(data.get("triggers", {})),
            comeback_candidates=list(data.get("comebackCandidates", []))
        )

@dataclass
class Document:
    """Единственный документ хранилища"""
    habits: List[Habit] = field(default_factory=list)
    profile: Profile = field(default_factory=Profile)
    stats: Stats = field(default_factory=Stats)
    achievements: List[str] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)
    last_reset_date: Optional[str] = None
    weekly_data: Dict[str, WeekRecord] = field(default_factory=dict)
    achievement_state: AchievementState = field(default_factory=AchievementState)
    version: str = SCHEMA_VERSION

    # ===== PROPERTIES =====

    @property
    def enabled_habits(self) -> List[Habit]:
        return [h for h in self.habits if h.enabled]

    def find_habit(self, habit_id: str) -> Optional[Habit]:
        for habit in self.habits:
            if habit.id == habit_id:
                return habit
        return None

    def require_habit(self, habit_id: str) -> Habit:
        habit = self.find_habit(habit_id)
        if habit is None:
            raise HabitNotFoundError(habit_id)
        return habit

    def unlock(self, achievement_id: str) -> bool:
        """Добавить достижение (множество только растет)"""
        if achievement_id in self.achievements:
            return False
        self.achievements.append(achievement_id)
        return True

    def week_record(self, week_key: str) -> WeekRecord:
        if week_key not in self.weekly_data:
            self.weekly_data[week_key] = WeekRecord()
        return self.weekly_data[week_key]

    def copy(self) -> "Document":
        return Document.from_dict(copy.deepcopy(self.to_dict()))

    # ===== SERIALIZATION =====

    def to_dict(self) -> Dict[str, Any]:
        """Сериализация в словарь"""
        return {
            "habits": [h.to_dict() for h in self.habits],
            "profile": self.profile.to_dict(),
            "stats": self.stats.to_dict(),
            "achievements": list(self.achievements),
            "settings": self.settings.to_dict(),
            "lastResetDate": self.last_reset_date,
            "weeklyData": {k: v.to_dict() for k, v in self.weekly_data.items()},
            "achievementState": self.achievement_state.to_dict(),
            "version": self.version
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        """Десериализация из словаря"""
        try:
            return cls(
                habits=[Habit.from_dict(h) for h in data.get("habits", [])],
                profile=Profile.from_dict(data.get("profile", {})),
                stats=Stats.from_dict(data.get("stats", {})),
                achievements=list(data.get("achievements", [])),
                settings=Settings.from_dict(data.get("settings", {})),
                last_reset_date=data.get("lastResetDate"),
                weekly_data={
                    k: WeekRecord.from_dict(v) for k, v in data.get("weeklyData", {}).items()
                },
                achievement_state=AchievementState.from_dict(data.get("achievementState", {})),
                version=data.get("version", SCHEMA_VERSION)
            )
        except (AttributeError, TypeError, ValueError) as e:
            logger.error(f"Ошибка десериализации документа: {e}")
            raise ValidationError(f"Failed to load document: {e}")

    @classmethod
    def create(cls, today: date) -> "Document":
        """Новый документ по умолчанию"""
        doc = cls()
        doc.profile.join_date = today.isoformat()
        doc.last_reset_date = today.isoformat()
        return doc

# ===== EXPORT =====

__all__ = [
    # Constants
    'XP_PER_LEVEL', 'SCHEMA_VERSION',

    # Enums
    'Frequency', 'HabitFilter',

    # Exceptions
    'ValidationError', 'HabitError', 'HabitNotFoundError',

    # Helpers
    'validate_text', 'validate_enum_value', 'validate_days', 'generate_id', 'level_for_xp',

    # Models
    'Reminder', 'Habit', 'Stats', 'Profile', 'Settings', 'WeekRecord', 'AchievementState', 'Document'
]

# database/migrations.py

import copy
import json
import logging
import uuid
from datetime import date
from typing import Any, Dict, List

from core.models import (
    SCHEMA_VERSION, DEFAULT_COLOR, DEFAULT_ICON, DEFAULT_REMINDER_TIME,
    Frequency, level_for_xp
)
from utils.validators import is_valid_date, is_valid_time, is_valid_weekday

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT: Dict[str, Any] = {
    "habits": [],
    "profile": {
        "username": "User",
        "avatar": "😊",
        "joinDate": None
    },
    "stats": {
        "totalXP": 0,
        "level": 1,
        "totalCompleted": 0,
        "perfectWeeks": 0
    },
    "achievements": [],
    "settings": {
        "theme": "system",
        "fontSize": "medium",
        "notifications": False,
        "reminderTime": "20:00",
        "sound": True
    },
    "lastResetDate": None,
    "weeklyData": {},
    "achievementState": {
        "triggers": {},
        "comebackCandidates": []
    },
    "version": SCHEMA_VERSION
}

# Сентинелы старой версии -> триггеры событийных достижений
LEGACY_SENTINELS = {
    "early_bird_unlocked": "early_bird",
    "night_owl_unlocked": "night_owl",
    "comeback_unlocked": "comeback",
}

# Старые ключи привычек -> новые
LEGACY_HABIT_KEYS = {
    "days": "scheduledDays",
    "lastCompleted": "lastCompletedDate",
    "createdAt": "createdDate",
}

def default_document(today: date) -> Dict[str, Any]:
    """Документ по умолчанию на указанную дату"""
    data = copy.deepcopy(DEFAULT_DOCUMENT)
    data["profile"]["joinDate"] = today.isoformat()
    data["lastResetDate"] = today.isoformat()
    return data

class DocumentMigration:
    """Миграции и нормализация документа"""

    VERSION_KEY = "version"
    CURRENT_VERSION = SCHEMA_VERSION
    LEGACY_VERSION = "1.0.0"

    @classmethod
    def get_version(cls, data: Dict[str, Any]) -> str:
        return data.get(cls.VERSION_KEY) or cls.LEGACY_VERSION

    @classmethod
    def needs_migration(cls, data: Dict[str, Any]) -> bool:
        return cls.get_version(data) != cls.CURRENT_VERSION

    @classmethod
    def migrate(cls, data: Dict[str, Any], today: date) -> Dict[str, Any]:
        """Привести документ к текущей схеме; исходный словарь не изменяется"""
        data = copy.deepcopy(data)
        current_version = cls.get_version(data)

        if current_version == cls.LEGACY_VERSION:
            logger.info(f"Migrating document from version {current_version} to {cls.CURRENT_VERSION}")
            data = cls._migrate_from_1_0_0(data)

        data = cls._ensure_structure(data, today)
        data[cls.VERSION_KEY] = cls.CURRENT_VERSION
        return data

    @classmethod
    def _migrate_from_1_0_0(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Миграция с версии 1.0.0: переименование ключей и перенос сентинелов"""
        for habit in data.get("habits") or []:
            if not isinstance(habit, dict):
                continue
            for old_key, new_key in LEGACY_HABIT_KEYS.items():
                if old_key in habit and new_key not in habit:
                    habit[new_key] = habit.pop(old_key)
                else:
                    habit.pop(old_key, None)

            if "reminder" not in habit:
                habit["reminder"] = {
                    "enabled": bool(habit.pop("reminderEnabled", False)),
                    "time": habit.pop("reminderTime", DEFAULT_REMINDER_TIME)
                }

        achievements = data.get("achievements") or []
        state = data.setdefault("achievementState", {})
        triggers = state.setdefault("triggers", {})
        kept = []
        for achievement_id in achievements:
            if achievement_id in LEGACY_SENTINELS:
                triggers.setdefault(LEGACY_SENTINELS[achievement_id], None)
            else:
                kept.append(achievement_id)
        data["achievements"] = kept

        return data

    @classmethod
    def _ensure_structure(cls, data: Dict[str, Any], today: date) -> Dict[str, Any]:
        """Заполнить отсутствующие поля значениями по умолчанию"""
        defaults = default_document(today)
        today_iso = today.isoformat()

        for key in ("profile", "stats", "settings", "achievementState"):
            section = data.get(key)
            if not isinstance(section, dict):
                section = {}
            merged = copy.deepcopy(defaults[key])
            merged.update(section)
            data[key] = merged

        if not isinstance(data.get("habits"), list):
            data["habits"] = []
        if not isinstance(data.get("weeklyData"), dict):
            data["weeklyData"] = {}
        if "lastResetDate" not in data:
            data["lastResetDate"] = None

        if not data["profile"].get("joinDate"):
            data["profile"]["joinDate"] = today_iso

        if not is_valid_time(data["settings"].get("reminderTime")):
            data["settings"]["reminderTime"] = defaults["settings"]["reminderTime"]

        # Триггеры без времени наблюдения (перенесенные сентинелы)
        triggers = data["achievementState"].get("triggers") or {}
        data["achievementState"]["triggers"] = {
            name: observed or today_iso for name, observed in triggers.items()
        }
        data["achievementState"]["comebackCandidates"] = list(dict.fromkeys(
            data["achievementState"].get("comebackCandidates") or []
        ))

        data["achievements"] = cls._unique([
            a for a in (data.get("achievements") or []) if a not in LEGACY_SENTINELS
        ])

        stats = data["stats"]
        stats["totalXP"] = max(0, int(stats.get("totalXP") or 0))
        stats["totalCompleted"] = max(0, int(stats.get("totalCompleted") or 0))
        stats["perfectWeeks"] = max(0, int(stats.get("perfectWeeks") or 0))
        stats["level"] = level_for_xp(stats["totalXP"])

        data["habits"] = [
            cls._normalize_habit(h, today_iso, index)
            for index, h in enumerate(data["habits"]) if isinstance(h, dict)
        ]
        return data

    @classmethod
    def _normalize_habit(cls, habit: Dict[str, Any], today_iso: str, index: int = 0) -> Dict[str, Any]:
        """Нормализация одной привычки"""
        frequency = habit.get("frequency")
        if frequency not in [f.value for f in Frequency]:
            frequency = Frequency.DAILY.value

        days = habit.get("scheduledDays") or []
        days = sorted({d for d in days if is_valid_weekday(d)})

        completed = cls._unique([d for d in (habit.get("completedDates") or []) if is_valid_date(d)])

        current = max(0, int(habit.get("currentStreak") or 0))
        best = max(current, int(habit.get("bestStreak") or 0))

        last_completed = habit.get("lastCompletedDate")
        if not is_valid_date(last_completed or ""):
            last_completed = None

        reminder = habit.get("reminder")
        if not isinstance(reminder, dict):
            reminder = {}
        reminder_time = reminder.get("time")
        if not is_valid_time(reminder_time or ""):
            reminder_time = DEFAULT_REMINDER_TIME

        return {
            "id": habit.get("id") or cls._derived_id(habit, index),
            "name": habit.get("name") or "Unnamed Habit",
            "description": habit.get("description") or "",
            "icon": habit.get("icon") or DEFAULT_ICON,
            "color": habit.get("color") or DEFAULT_COLOR,
            "frequency": frequency,
            "scheduledDays": days,
            "enabled": habit.get("enabled") is not False,
            "currentStreak": current,
            "bestStreak": best,
            "lastCompletedDate": last_completed,
            "completedDates": completed,
            "createdDate": habit.get("createdDate") or today_iso,
            "reminder": {"enabled": bool(reminder.get("enabled", False)), "time": reminder_time},
            "order": habit.get("order") if isinstance(habit.get("order"), int) else 0
        }

    @staticmethod
    def _derived_id(habit: Dict[str, Any], index: int) -> str:
        """Id для привычки без id: одинаковый при каждом чтении тех же данных"""
        content = json.dumps(habit, sort_keys=True, ensure_ascii=False, default=str)
        return uuid.uuid5(uuid.NAMESPACE_URL, f"solohabits:{index}:{content}").hex

    @staticmethod
    def _unique(items: List[Any]) -> List[Any]:
        return list(dict.fromkeys(items))

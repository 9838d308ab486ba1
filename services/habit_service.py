# services/habit_service.py

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.achievements import AchievementDefinition, AchievementEngine
from core.models import (
    Document, Frequency, Habit, HabitFilter, Profile, Settings, ValidationError,
    validate_days, validate_enum_value, validate_text
)
from core.streaks import StreakEngine, was_active_on_date
from core.xp import ACHIEVEMENT, XPBonus, XPEngine, completion_value
from utils.datetime_utils import Clock, make_clock, today_str
from utils.validators import is_valid_color, is_valid_time

logger = logging.getLogger(__name__)

# Поля привычки, которые можно менять через update()
UPDATABLE_FIELDS = {
    "name", "description", "icon", "color", "frequency", "scheduled_days",
    "enabled", "reminder_enabled", "reminder_time"
}

@dataclass
class CompletionResult:
    """Итог выполнения привычки"""
    habit_id: str
    already_completed: bool = False
    xp: int = 0
    bonuses: List[XPBonus] = field(default_factory=list)
    leveled_up: bool = False
    new_level: int = 1
    total_xp: int = 0
    streak: int = 0
    achievements: List[AchievementDefinition] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "habit_id": self.habit_id,
            "already_completed": self.already_completed,
            "xp": self.xp,
            "bonuses": [b.to_dict() for b in self.bonuses],
            "leveled_up": self.leveled_up,
            "new_level": self.new_level,
            "total_xp": self.total_xp,
            "streak": self.streak,
            "achievements": [a.id for a in self.achievements]
        }

class HabitService:
    """
    Сервис привычек: CRUD и оркестрация выполнения

    Каждый шаг выполнения - отдельная транзакция хранилища:
    отметка даты -> серия -> XP -> события -> достижения.
    """

    def __init__(self, store, streaks: StreakEngine, xp: XPEngine,
                 achievements: AchievementEngine, clock: Optional[Clock] = None):
        self.store = store
        self.streaks = streaks
        self.xp = xp
        self.achievements = achievements
        self.clock = clock or make_clock()

    def _load(self) -> Document:
        return self.store.load() or self.store.new_document()

    def _reward_achievements(self) -> List[AchievementDefinition]:
        unlocked, _ = self.achievements.check_all_with_rewards(self.xp, ACHIEVEMENT)
        return unlocked

    # ===== READ =====

    def get_all(self) -> List[Habit]:
        return self._load().habits

    def get(self, habit_id: str) -> Optional[Habit]:
        return self._load().find_habit(habit_id)

    def get_today_habits(self) -> List[Habit]:
        """Включенные привычки, запланированные на сегодня, по порядку"""
        today_iso = today_str(self.clock)
        habits = [
            h for h in self._load().habits
            if h.enabled and was_active_on_date(h, today_iso)
        ]
        return sorted(habits, key=lambda h: h.order)

    def get_filtered(self, habit_filter: str = HabitFilter.ALL.value) -> List[Habit]:
        habit_filter = validate_enum_value(habit_filter, HabitFilter, "filter")
        habits = self.get_today_habits()

        if habit_filter == HabitFilter.DAILY.value:
            return [h for h in habits if h.frequency == Frequency.DAILY.value]
        if habit_filter == HabitFilter.WEEKLY.value:
            return [h for h in habits if h.frequency in (Frequency.WEEKLY.value, Frequency.CUSTOM.value)]
        return habits

    def is_completed_today(self, habit_id: str) -> bool:
        habit = self.get(habit_id)
        return habit.is_completed_on(today_str(self.clock)) if habit else False

    def get_today_stats(self) -> Dict[str, int]:
        today_iso = today_str(self.clock)
        habits = self.get_today_habits()
        completed = len([h for h in habits if h.is_completed_on(today_iso)])
        total = len(habits)
        percentage = int(completed * 100 / total + 0.5) if total else 0
        return {"completed": completed, "total": total, "percentage": percentage}

    # ===== CRUD =====

    def add(self, name: str, description: Optional[str] = None, icon: Optional[str] = None,
            color: Optional[str] = None, frequency: str = Frequency.DAILY.value,
            scheduled_days: Optional[List[int]] = None, reminder_enabled: bool = False,
            reminder_time: Optional[str] = None) -> Habit:
        """Создать привычку в конце списка"""
        if color is not None and not is_valid_color(color):
            raise ValidationError(f"Invalid color: {color!r} (expected #rrggbb)")
        created = today_str(self.clock)

        def mutator(doc: Document) -> Habit:
            order = max([h.order for h in doc.habits] + [-1]) + 1
            habit = Habit.create(
                name, created_date=created, order=order, description=description,
                icon=icon, color=color, frequency=frequency, scheduled_days=scheduled_days,
                reminder_enabled=reminder_enabled, reminder_time=reminder_time
            )
            doc.habits.append(habit)
            return habit

        habit = self.store.update(mutator)
        logger.info(f"➕ Habit created: {habit.icon} {habit.name} ({habit.id})")

        # multi_habit зависит от числа включенных привычек
        self._reward_achievements()
        return habit

    def update(self, habit_id: str, **changes) -> Habit:
        """Изменить поля привычки; id неизменяем"""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {sorted(unknown)}")

        if "frequency" in changes:
            validate_enum_value(changes["frequency"], Frequency, "frequency")
        if "scheduled_days" in changes:
            changes["scheduled_days"] = validate_days(changes["scheduled_days"])
        if changes.get("color") is not None and not is_valid_color(changes["color"]):
            raise ValidationError(f"Invalid color: {changes['color']!r}")
        if "reminder_time" in changes and not is_valid_time(changes["reminder_time"]):
            raise ValidationError(f"Invalid reminder time: {changes['reminder_time']!r}")

        def mutator(doc: Document) -> Habit:
            habit = doc.require_habit(habit_id)

            for key, value in changes.items():
                if key == "name":
                    value = (value or "").strip()
                    if value:
                        habit.name = validate_text(value, max_length=100, field_name="name")
                elif key == "description":
                    habit.description = (value or "").strip()
                elif key == "reminder_enabled":
                    habit.reminder.enabled = bool(value)
                elif key == "reminder_time":
                    habit.reminder.time = value
                elif key == "enabled":
                    habit.enabled = bool(value)
                elif value is not None:
                    setattr(habit, key, value)

            return habit

        return self.store.update(mutator)

    def delete(self, habit_id: str) -> bool:
        def mutator(doc: Document) -> bool:
            before = len(doc.habits)
            doc.habits = [h for h in doc.habits if h.id != habit_id]
            state = doc.achievement_state
            state.comeback_candidates = [c for c in state.comeback_candidates if c != habit_id]
            return len(doc.habits) < before

        deleted = self.store.update(mutator)
        if deleted:
            logger.info(f"🗑️ Habit deleted: {habit_id}")
        return deleted

    def toggle_enabled(self, habit_id: str) -> Habit:
        def mutator(doc: Document) -> Habit:
            habit = doc.require_habit(habit_id)
            habit.enabled = not habit.enabled
            return habit

        return self.store.update(mutator)

    def reorder(self, from_index: int, to_index: int) -> List[Habit]:
        """Переместить привычку и перенумеровать order с нуля"""

        def mutator(doc: Document) -> List[Habit]:
            habits = sorted(doc.habits, key=lambda h: h.order)
            for index in (from_index, to_index):
                if not 0 <= index < len(habits):
                    raise ValidationError(f"Index out of range: {index}")

            moved = habits.pop(from_index)
            habits.insert(to_index, moved)
            for i, habit in enumerate(habits):
                habit.order = i
            doc.habits = habits
            return habits

        return self.store.update(mutator)

    # ===== COMPLETION =====

    def complete(self, habit_id: str) -> CompletionResult:
        """Отметить привычку выполненной сегодня"""
        today_iso = today_str(self.clock)
        completed_at: datetime = self.clock()

        habit = self._load().require_habit(habit_id)
        if habit.is_completed_on(today_iso):
            return CompletionResult(habit_id, already_completed=True, streak=habit.current_streak)

        def record(doc: Document) -> None:
            target = doc.require_habit(habit_id)
            if target.add_completion(today_iso):
                doc.stats.total_completed += 1

        self.store.update(record)

        streak = self.streaks.complete(habit_id)

        habit = self._load().require_habit(habit_id)
        award = self.xp.award_habit_completion(habit)
        change = self.xp.add_xp(award.xp)

        if streak.streak_broken:
            self.achievements.observe_streak_breaks([habit_id])
        self.achievements.observe_completion(habit_id, completed_at)

        unlocked, achievement_level_up = self.achievements.check_all_with_rewards(self.xp, ACHIEVEMENT)

        doc = self._load()
        result = CompletionResult(
            habit_id=habit_id,
            xp=award.xp,
            bonuses=award.bonuses,
            leveled_up=change.leveled_up or achievement_level_up,
            new_level=doc.stats.level,
            total_xp=doc.stats.total_xp,
            streak=streak.current_streak,
            achievements=unlocked
        )
        logger.info(f"✅ Habit {habit_id} completed (+{award.xp} XP, streak: {streak.current_streak})")
        return result

    def uncomplete(self, habit_id: str) -> bool:
        """Отменить сегодняшнее выполнение; достижения не отзываются"""
        today_iso = today_str(self.clock)

        habit = self._load().require_habit(habit_id)
        if not habit.is_completed_on(today_iso):
            return False

        amount = completion_value(habit.current_streak)

        def remove(doc: Document) -> None:
            target = doc.require_habit(habit_id)
            if target.remove_completion(today_iso):
                doc.stats.total_completed = max(0, doc.stats.total_completed - 1)

        self.store.update(remove)
        self.xp.add_xp(-amount)
        self.streaks.uncomplete(habit_id)

        logger.info(f"↩️ Habit {habit_id} completion undone (-{amount} XP)")
        return True

    # ===== PROFILE & SETTINGS =====

    def update_profile(self, username: Optional[str] = None, avatar: Optional[str] = None) -> Profile:
        def mutator(doc: Document) -> Profile:
            if username is not None and username.strip():
                doc.profile.username = username.strip()
            if avatar:
                doc.profile.avatar = avatar
            return doc.profile

        return self.store.update(mutator)

    def update_settings(self, **changes) -> Settings:
        unknown = set(changes) - set(Settings.FIELD_KEYS)
        if unknown:
            raise ValidationError(f"Unknown settings: {sorted(unknown)}")

        def mutator(doc: Document) -> Settings:
            merged = {attr: getattr(doc.settings, attr) for attr in Settings.FIELD_KEYS}
            merged.update(changes)
            doc.settings = Settings(**merged)
            return doc.settings

        return self.store.update(mutator)

__all__ = ['CompletionResult', 'HabitService']

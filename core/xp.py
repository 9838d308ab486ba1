#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SoloHabits - XP Engine
Начисление опыта, уровни и бонус за идеальную неделю

Версия: 1.1.0
Дата: 2026-10-17
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from core.models import XP_PER_LEVEL, Document, Habit, level_for_xp
from core.streaks import StreakEngine, was_active_on_date
from utils.datetime_utils import Clock, make_clock, today, week_days

logger = logging.getLogger(__name__)

# ===== REWARDS =====

HABIT_COMPLETE = 10     # базовый XP за выполнение
STREAK_BONUS_3 = 5      # серия 3+ дней
STREAK_BONUS_7 = 10     # серия 7+ дней
STREAK_BONUS_30 = 20    # серия 30+ дней
PERFECT_WEEK = 30       # все привычки всю неделю
ACHIEVEMENT = 25        # за каждое достижение

# Пороги серий, от старшего к младшему
STREAK_TIERS = [
    (30, STREAK_BONUS_30),
    (7, STREAK_BONUS_7),
    (3, STREAK_BONUS_3),
]

@dataclass
class XPBonus:
    type: str
    amount: int

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'amount': self.amount}

@dataclass
class XPAward:
    """Опыт за одно выполнение привычки"""
    xp: int
    bonuses: List[XPBonus] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'xp': self.xp, 'bonuses': [b.to_dict() for b in self.bonuses]}

@dataclass
class LevelChange:
    """Результат изменения XP"""
    leveled_up: bool
    old_level: int
    new_level: int
    total_xp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'leveled_up': self.leveled_up,
            'old_level': self.old_level,
            'new_level': self.new_level,
            'total_xp': self.total_xp
        }

def calculate_level(total_xp: int) -> int:
    return level_for_xp(total_xp)

def streak_bonus(streak: int) -> Optional[XPBonus]:
    """Ровно один бонус - за старший достигнутый порог"""
    for threshold, amount in STREAK_TIERS:
        if streak >= threshold:
            return XPBonus(f"{threshold}-day streak", amount)
    return None

def completion_value(streak: int) -> int:
    """Сумма XP за выполнение при указанной серии"""
    bonus = streak_bonus(streak)
    return HABIT_COMPLETE + (bonus.amount if bonus else 0)

def calculate_progress(total_xp: int) -> int:
    """Прогресс внутри текущего уровня, в процентах"""
    return int(total_xp % XP_PER_LEVEL * 100 / XP_PER_LEVEL + 0.5)

def get_xp_for_next_level(total_xp: int) -> int:
    return XP_PER_LEVEL - total_xp % XP_PER_LEVEL

def get_total_xp_for_level(level: int) -> int:
    return (level - 1) * XP_PER_LEVEL

class XPEngine:
    """Движок опыта"""

    def __init__(self, store, streaks: Optional[StreakEngine] = None, clock: Optional[Clock] = None):
        self.store = store
        self.streaks = streaks
        self.clock = clock or make_clock()

    # Чистые функции доступны и через движок
    calculate_level = staticmethod(calculate_level)
    completion_value = staticmethod(completion_value)
    calculate_progress = staticmethod(calculate_progress)
    get_xp_for_next_level = staticmethod(get_xp_for_next_level)
    get_total_xp_for_level = staticmethod(get_total_xp_for_level)

    def award_habit_completion(self, habit: Habit) -> XPAward:
        """XP за выполнение, серия берется уже после обновления"""
        bonus = streak_bonus(habit.current_streak)
        if bonus is None:
            return XPAward(HABIT_COMPLETE)
        return XPAward(HABIT_COMPLETE + bonus.amount, [bonus])

    def add_xp(self, amount: int) -> LevelChange:
        """Изменить общий XP (не ниже нуля) и пересчитать уровень"""

        def mutator(doc: Document) -> LevelChange:
            old_level = doc.stats.level
            doc.stats.total_xp = max(0, doc.stats.total_xp + amount)
            new_level = doc.stats.level
            return LevelChange(new_level > old_level, old_level, new_level, doc.stats.total_xp)

        change = self.store.update(mutator)
        if change.leveled_up:
            logger.info(f"🎉 Level up! {change.old_level} -> {change.new_level} ({change.total_xp} XP)")
        return change

    def _active_on(self, habit: Habit, day: str) -> bool:
        if self.streaks is not None:
            return self.streaks.was_active_on_date(habit, day)
        return was_active_on_date(habit, day)

    def check_perfect_week(self) -> bool:
        """Бонус за идеальную неделю, не чаще одного раза за неделю

        Проверяется только в последний день недели (суббота).
        """
        days = week_days(self.clock)
        if today(self.clock).isoformat() != days[-1]:
            return False

        week_key = days[0]

        def mutator(doc: Document) -> bool:
            habits = doc.enabled_habits
            if not habits:
                return False

            for day in days:
                for habit in habits:
                    if self._active_on(habit, day) and not habit.is_completed_on(day):
                        return False

            record = doc.week_record(week_key)
            if record.perfect_week_awarded:
                return False

            record.perfect_week_awarded = True
            doc.stats.perfect_weeks += 1
            doc.stats.total_xp += PERFECT_WEEK
            return True

        awarded = self.store.update(mutator)
        if awarded:
            logger.info(f"🎖️ Perfect week {week_key}! +{PERFECT_WEEK} XP")
        return awarded

    def get_xp_info(self) -> Dict[str, Any]:
        doc = self.store.load()
        total_xp = doc.stats.total_xp if doc else 0
        return {
            'total_xp': total_xp,
            'level': calculate_level(total_xp),
            'progress': calculate_progress(total_xp),
            'xp_to_next': get_xp_for_next_level(total_xp),
            'xp_in_level': total_xp % XP_PER_LEVEL,
            'next_level_total': XP_PER_LEVEL
        }

__all__ = [
    'HABIT_COMPLETE', 'STREAK_BONUS_3', 'STREAK_BONUS_7', 'STREAK_BONUS_30',
    'PERFECT_WEEK', 'ACHIEVEMENT',
    'XPBonus', 'XPAward', 'LevelChange', 'XPEngine',
    'calculate_level', 'streak_bonus', 'completion_value', 'calculate_progress',
    'get_xp_for_next_level', 'get_total_xp_for_level'
]

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SoloHabits - Streak Engine
Подсчет серий выполнения привычек

Версия: 1.1.0
Дата: 2026-10-17
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Union
import logging

from core.models import Document, Frequency, Habit
from utils.datetime_utils import Clock, make_clock, days_since, today, weekday_index

logger = logging.getLogger(__name__)

STREAK_MILESTONES = [3, 7, 14, 21, 30, 60, 90, 100, 365]

# День недели по умолчанию для weekly-привычек без расписания
DEFAULT_WEEKLY_DAY = 1  # понедельник

@dataclass
class StreakUpdate:
    """Результат изменения серии одной привычки"""
    habit_id: str
    previous_streak: int
    current_streak: int
    best_streak: int
    changed: bool = True
    streak_broken: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'habit_id': self.habit_id,
            'previous_streak': self.previous_streak,
            'current_streak': self.current_streak,
            'best_streak': self.best_streak,
            'changed': self.changed,
            'streak_broken': self.streak_broken
        }

def was_active_on_date(habit: Habit, day: Union[date, str]) -> bool:
    """Была ли привычка запланирована на указанный день"""
    weekday = weekday_index(day)

    if habit.frequency == Frequency.DAILY.value:
        return True
    if habit.frequency == Frequency.WEEKLY.value:
        if not habit.scheduled_days:
            return weekday == DEFAULT_WEEKLY_DAY
        return weekday in habit.scheduled_days
    if habit.frequency == Frequency.CUSTOM.value:
        return weekday in habit.scheduled_days
    return True

def get_streak_status(current_streak: int) -> Dict[str, str]:
    """Эмодзи и подпись для отображения серии"""
    if current_streak >= 30:
        return {'emoji': '🔥', 'label': 'On Fire!'}
    if current_streak >= 7:
        return {'emoji': '⚡', 'label': 'Hot Streak!'}
    if current_streak >= 3:
        return {'emoji': '✨', 'label': 'Building!'}
    if current_streak > 0:
        return {'emoji': '🌱', 'label': 'Growing'}
    return {'emoji': '', 'label': ''}

class StreakEngine:
    """Движок серий: выполнение, отмена, проверка прерванных серий"""

    def __init__(self, store, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or make_clock()

    was_active_on_date = staticmethod(was_active_on_date)

    def _today(self) -> str:
        return today(self.clock).isoformat()

    def _yesterday(self) -> str:
        return (today(self.clock) - timedelta(days=1)).isoformat()

    # ===== MUTATIONS =====

    def complete(self, habit_id: str) -> StreakUpdate:
        """Продлить серию привычки за сегодня

        Решение принимается по last_completed_date до этого выполнения:
        сегодня - без изменений, вчера - продолжение, иначе серия начинается заново.
        """
        today_iso = self._today()
        yesterday_iso = self._yesterday()

        def mutator(doc: Document) -> StreakUpdate:
            habit = doc.require_habit(habit_id)
            previous = habit.current_streak
            last = habit.last_completed_date

            if last == today_iso:
                return StreakUpdate(habit_id, previous, previous, habit.best_streak, changed=False)

            broken = False
            if last == yesterday_iso:
                habit.current_streak += 1
            else:
                broken = previous > 0
                habit.current_streak = 1

            habit.best_streak = max(habit.best_streak, habit.current_streak)
            habit.last_completed_date = today_iso

            return StreakUpdate(habit_id, previous, habit.current_streak, habit.best_streak,
                                streak_broken=broken)

        update = self.store.update(mutator)
        if update.streak_broken:
            logger.info(f"💔 Streak of {update.previous_streak} broken for habit {habit_id}")
        if update.current_streak in STREAK_MILESTONES and update.changed:
            logger.info(f"🔥 Habit {habit_id} reached a {update.current_streak}-day streak")
        return update

    def uncomplete(self, habit_id: str) -> StreakUpdate:
        """Откатить сегодняшнее продление серии"""
        today_iso = self._today()
        yesterday_iso = self._yesterday()

        def mutator(doc: Document) -> StreakUpdate:
            habit = doc.require_habit(habit_id)
            previous = habit.current_streak

            if habit.last_completed_date != today_iso:
                return StreakUpdate(habit_id, previous, previous, habit.best_streak, changed=False)

            if yesterday_iso in habit.completed_dates:
                habit.current_streak = max(0, habit.current_streak - 1)
            else:
                habit.current_streak = 0

            remaining = [d for d in habit.completed_dates if d != today_iso]
            habit.last_completed_date = max(remaining) if remaining else None

            return StreakUpdate(habit_id, previous, habit.current_streak, habit.best_streak)

        return self.store.update(mutator)

    def check_broken_streaks(self) -> List[str]:
        """Сбросить серии, пропущенные вчера; дни отдыха серию не прерывают"""
        today_iso = self._today()
        yesterday_iso = self._yesterday()

        def mutator(doc: Document) -> List[str]:
            reset = []
            for habit in doc.enabled_habits:
                last = habit.last_completed_date
                if not last or last in (today_iso, yesterday_iso):
                    continue
                if not was_active_on_date(habit, yesterday_iso):
                    continue
                if habit.current_streak > 0:
                    habit.current_streak = 0
                    reset.append(habit.id)
            return reset

        reset = self.store.update(mutator)
        for habit_id in reset:
            logger.info(f"💔 Streak reset for habit {habit_id}")
        return reset

    # ===== READ HELPERS =====

    def _habits(self) -> List[Habit]:
        doc = self.store.load()
        return doc.habits if doc else []

    def get_streak_info(self, habit_id: str) -> Dict[str, Any]:
        doc = self.store.load()
        habit = doc.find_habit(habit_id) if doc else None
        if habit is None:
            return {'current': 0, 'best': 0, 'last_completed': None, 'days_since_last': None}

        return {
            'current': habit.current_streak,
            'best': habit.best_streak,
            'last_completed': habit.last_completed_date,
            'days_since_last': days_since(habit.last_completed_date, self.clock),
            'status': get_streak_status(habit.current_streak)
        }

    def get_best_overall_streak(self) -> int:
        return max([h.best_streak for h in self._habits()] + [0])

    def get_current_best_streak(self) -> int:
        return max([h.current_streak for h in self._habits()] + [0])

    def get_total_streak_days(self) -> int:
        """Сумма текущих серий всех привычек"""
        return sum(h.current_streak for h in self._habits())

    def get_streak_leaderboard(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Включенные привычки, отсортированные по текущей серии"""
        board = [
            {
                'id': h.id,
                'name': h.name,
                'icon': h.icon,
                'current_streak': h.current_streak,
                'best_streak': h.best_streak
            }
            for h in self._habits() if h.enabled
        ]
        board.sort(key=lambda item: item['current_streak'], reverse=True)
        return board[:limit] if limit else board

    def check_streak_milestones(self) -> List[Dict[str, Any]]:
        """Привычки, текущая серия которых ровно на рубеже"""
        return [
            {'habit_id': h.id, 'habit_name': h.name, 'milestone': h.current_streak}
            for h in self._habits() if h.current_streak in STREAK_MILESTONES
        ]

__all__ = [
    'STREAK_MILESTONES',
    'StreakUpdate',
    'StreakEngine',
    'was_active_on_date',
    'get_streak_status'
]

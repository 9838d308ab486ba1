# services/stats_service.py

import logging
import math
from typing import Any, Dict, List, Optional

from core.models import Document, Frequency, Habit
from core.streaks import StreakEngine, was_active_on_date
from core.xp import calculate_progress, get_xp_for_next_level
from utils.datetime_utils import Clock, days_ago, days_since, make_clock, today_str, week_days

logger = logging.getLogger(__name__)

DAY_LABELS = ['Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat']

def _percent(part: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(part * 100 / total + 0.5)

class StatsService:
    """Статистика для профиля и недельного обзора"""

    def __init__(self, store, streaks: StreakEngine, clock: Optional[Clock] = None):
        self.store = store
        self.streaks = streaks
        self.clock = clock or make_clock()

    def _load(self) -> Document:
        return self.store.load() or self.store.new_document()

    @staticmethod
    def _day_counts(doc: Document, day: str):
        total = 0
        completed = 0
        for habit in doc.enabled_habits:
            if was_active_on_date(habit, day):
                total += 1
                if habit.is_completed_on(day):
                    completed += 1
        return completed, total

    def get_week_overview(self) -> List[Dict[str, Any]]:
        """Выполнено / запланировано по дням текущей недели"""
        doc = self._load()
        today_iso = today_str(self.clock)

        overview = []
        for index, day in enumerate(week_days(self.clock)):
            completed, total = self._day_counts(doc, day)
            overview.append({
                'date': day,
                'label': DAY_LABELS[index],
                'is_today': day == today_iso,
                'completed': completed,
                'total': total,
                'percentage': _percent(completed, total)
            })
        return overview

    def get_average_completion(self, days: int = 7) -> int:
        """Средний процент выполнения за последние N дней, включая сегодня"""
        doc = self._load()
        if not doc.habits:
            return 0

        expected = 0
        done = 0
        for i in range(days):
            completed, total = self._day_counts(doc, days_ago(self.clock, i))
            expected += total
            done += completed
        return _percent(done, expected)

    def get_completion_rate(self, habit: Habit) -> int:
        """Процент выполнения с момента создания с поправкой на частоту"""
        if not habit.completed_dates:
            return 0

        since = days_since(habit.created_date, self.clock) if habit.created_date else 0
        total_days = max(1, since or 0)

        expected = total_days
        if habit.frequency == Frequency.WEEKLY.value:
            expected = math.ceil(total_days / 7)
        elif habit.frequency == Frequency.CUSTOM.value and habit.scheduled_days:
            expected = math.ceil(total_days * len(habit.scheduled_days) / 7)

        return min(100, _percent(len(habit.completed_dates), expected))

    def get_habit_rates(self) -> List[Dict[str, Any]]:
        return [
            {
                'id': h.id,
                'name': h.name,
                'icon': h.icon,
                'rate': self.get_completion_rate(h),
                'current_streak': h.current_streak,
                'best_streak': h.best_streak
            }
            for h in sorted(self._load().habits, key=lambda h: h.order)
        ]

    def get_missed_habits(self, day: Optional[str] = None) -> List[Habit]:
        """Включенные привычки, запланированные на день и не выполненные (по умолчанию вчера)"""
        day = day or days_ago(self.clock, 1)
        return [
            h for h in self._load().enabled_habits
            if was_active_on_date(h, day) and not h.is_completed_on(day)
        ]

    def get_profile_summary(self) -> Dict[str, Any]:
        doc = self._load()
        stats = doc.stats
        return {
            'username': doc.profile.username,
            'avatar': doc.profile.avatar,
            'join_date': doc.profile.join_date,
            'days_active': days_since(doc.profile.join_date, self.clock) or 0,
            'level': stats.level,
            'total_xp': stats.total_xp,
            'level_progress': calculate_progress(stats.total_xp),
            'xp_to_next': get_xp_for_next_level(stats.total_xp),
            'total_completed': stats.total_completed,
            'perfect_weeks': stats.perfect_weeks,
            'best_streak': self.streaks.get_best_overall_streak(),
            'achievements_unlocked': len(doc.achievements),
            'average_completion': self.get_average_completion()
        }

__all__ = ['StatsService']

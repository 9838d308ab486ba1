#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SoloHabits - Daily Rollover
Ежедневный сброс: прерванные серии и идеальная неделя
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

from core.achievements import AchievementEngine
from core.models import Document
from core.streaks import StreakEngine
from core.xp import ACHIEVEMENT, XPEngine
from utils.datetime_utils import Clock, make_clock, today_str

logger = logging.getLogger(__name__)

@dataclass
class RolloverResult:
    performed: bool
    date: str
    previous_reset_date: Optional[str] = None
    broken_streaks: List[str] = field(default_factory=list)
    perfect_week: bool = False
    achievements: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'performed': self.performed,
            'date': self.date,
            'previous_reset_date': self.previous_reset_date,
            'broken_streaks': list(self.broken_streaks),
            'perfect_week': self.perfect_week,
            'achievements': list(self.achievements)
        }

class DailyRolloverCoordinator:
    """Выполняет дневной переход не более одного раза за календарный день"""

    def __init__(self, store, streaks: StreakEngine, xp: XPEngine,
                 achievements: Optional[AchievementEngine] = None,
                 clock: Optional[Clock] = None):
        self.store = store
        self.streaks = streaks
        self.xp = xp
        self.achievements = achievements
        self.clock = clock or make_clock()

    def needs_reset(self) -> bool:
        doc = self.store.load()
        if doc is None:
            return False
        return doc.last_reset_date != today_str(self.clock)

    def check_daily_reset(self) -> RolloverResult:
        today_iso = today_str(self.clock)
        doc = self.store.load()
        previous = doc.last_reset_date if doc else today_iso

        if previous == today_iso:
            return RolloverResult(performed=False, date=today_iso, previous_reset_date=previous)

        logger.info(f"📅 Performing daily reset (last reset: {previous})")

        broken = self.streaks.check_broken_streaks()
        perfect_week = self.xp.check_perfect_week()

        unlocked = []
        if self.achievements is not None:
            self.achievements.observe_streak_breaks(broken)
            definitions, _ = self.achievements.check_all_with_rewards(self.xp, ACHIEVEMENT)
            unlocked = [a.id for a in definitions]

        def mark_reset(latest: Document) -> None:
            latest.last_reset_date = today_iso

        self.store.update(mark_reset)

        result = RolloverResult(
            performed=True,
            date=today_iso,
            previous_reset_date=previous,
            broken_streaks=broken,
            perfect_week=perfect_week,
            achievements=unlocked
        )
        logger.info(f"✅ Daily reset done: {len(broken)} streaks reset, perfect week: {perfect_week}")
        return result

__all__ = ['RolloverResult', 'DailyRolloverCoordinator']

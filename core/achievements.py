#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SoloHabits - Achievement System
Декларативная таблица достижений: правила, оценка и разблокировка

Версия: 1.1.0
Дата: 2026-10-17
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass
from enum import Enum
from abc import ABC, abstractmethod
import logging

from core.models import Document, ValidationError, validate_enum_value
from utils.datetime_utils import Clock, make_clock

logger = logging.getLogger(__name__)

# ===== ENUMS =====

class Metric(Enum):
    """Числовые показатели документа для пороговых правил"""
    TOTAL_COMPLETED = "total_completed"
    LEVEL = "level"
    TOTAL_XP = "total_xp"
    PERFECT_WEEKS = "perfect_weeks"
    ENABLED_HABITS = "enabled_habits"

class Trigger(Enum):
    """События для событийных достижений"""
    EARLY_BIRD = "early_bird"
    NIGHT_OWL = "night_owl"
    COMEBACK = "comeback"

EARLY_BIRD_HOUR = 8     # выполнение раньше 8:00
NIGHT_OWL_HOUR = 22     # выполнение в 22:00 и позже
COMEBACK_STREAK = 3     # серия, которую нужно потерять и восстановить

METRIC_GETTERS: Dict[str, Callable[[Document], int]] = {
    Metric.TOTAL_COMPLETED.value: lambda doc: doc.stats.total_completed,
    Metric.LEVEL.value: lambda doc: doc.stats.level,
    Metric.TOTAL_XP.value: lambda doc: doc.stats.total_xp,
    Metric.PERFECT_WEEKS.value: lambda doc: doc.stats.perfect_weeks,
    Metric.ENABLED_HABITS.value: lambda doc: len(doc.enabled_habits),
}

# ===== RULES =====

@dataclass
class RuleResult:
    """Результат оценки правила"""
    satisfied: bool
    progress: int
    target: int

class AchievementRule(ABC):
    """Базовое правило достижения"""

    kind: str = ""

    @property
    @abstractmethod
    def target(self) -> int:
        pass

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        pass

@dataclass(frozen=True)
class ThresholdRule(AchievementRule):
    """Показатель документа >= target"""
    metric: str
    threshold: int

    kind = "threshold"

    def __post_init__(self):
        validate_enum_value(self.metric, Metric, "metric")
        if self.threshold < 1:
            raise ValidationError("threshold must be positive")

    @property
    def target(self) -> int:
        return self.threshold

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind, 'metric': self.metric, 'target': self.threshold}

@dataclass(frozen=True)
class AnyHabitStreakRule(AchievementRule):
    """Любая привычка с текущей или лучшей серией >= target"""
    streak: int

    kind = "any_habit_streak"

    def __post_init__(self):
        if self.streak < 1:
            raise ValidationError("streak must be positive")

    @property
    def target(self) -> int:
        return self.streak

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind, 'target': self.streak}

@dataclass(frozen=True)
class EventTriggeredRule(AchievementRule):
    """Событие было зафиксировано хотя бы раз"""
    trigger: str

    kind = "event"

    def __post_init__(self):
        validate_enum_value(self.trigger, Trigger, "trigger")

    @property
    def target(self) -> int:
        return 1

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': self.kind, 'trigger': self.trigger}

def rule_from_dict(data: Dict[str, Any]) -> AchievementRule:
    """Восстановление правила из словаря"""
    kind = data.get('kind')
    try:
        if kind == ThresholdRule.kind:
            return ThresholdRule(data['metric'], int(data['target']))
        if kind == AnyHabitStreakRule.kind:
            return AnyHabitStreakRule(int(data['target']))
        if kind == EventTriggeredRule.kind:
            return EventTriggeredRule(data['trigger'])
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {kind} rule: {e}")
    raise ValidationError(f"Unknown rule kind: {kind!r}")

def evaluate_rule(rule: AchievementRule, doc: Document) -> RuleResult:
    """Единый вычислитель правил"""
    target = rule.target

    if isinstance(rule, ThresholdRule):
        value = METRIC_GETTERS[rule.metric](doc)
        return RuleResult(value >= target, min(target, value), target)

    if isinstance(rule, AnyHabitStreakRule):
        satisfied = any(
            h.current_streak >= target or h.best_streak >= target for h in doc.habits
        )
        progress = max([min(target, h.current_streak) for h in doc.habits] + [0])
        return RuleResult(satisfied, progress, target)

    if isinstance(rule, EventTriggeredRule):
        observed = rule.trigger in doc.achievement_state.triggers
        return RuleResult(observed, 1 if observed else 0, target)

    raise ValidationError(f"Unsupported rule: {rule!r}")

# ===== DEFINITIONS =====

@dataclass(frozen=True)
class AchievementDefinition:
    """Определение достижения"""
    id: str
    name: str
    description: str
    icon: str
    rule: AchievementRule

    @property
    def target(self) -> int:
        return self.rule.target

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'icon': self.icon,
            'target': self.target,
            'rule': self.rule.to_dict()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AchievementDefinition":
        try:
            return cls(
                id=data['id'],
                name=data['name'],
                description=data.get('description', ''),
                icon=data.get('icon', '🏅'),
                rule=rule_from_dict(data['rule'])
            )
        except KeyError as e:
            raise ValidationError(f"Achievement definition is missing {e}")

DEFINITIONS: List[AchievementDefinition] = [
    AchievementDefinition("first_habit", "First Steps", "Complete your first habit", "🎯",
                          ThresholdRule(Metric.TOTAL_COMPLETED.value, 1)),
    AchievementDefinition("streak_3", "Getting Started", "Achieve a 3-day streak", "🌱",
                          AnyHabitStreakRule(3)),
    AchievementDefinition("streak_7", "Week Warrior", "Achieve a 7-day streak", "🔥",
                          AnyHabitStreakRule(7)),
    AchievementDefinition("streak_30", "Monthly Master", "Achieve a 30-day streak", "💎",
                          AnyHabitStreakRule(30)),
    AchievementDefinition("level_5", "Rising Star", "Reach Level 5", "⭐",
                          ThresholdRule(Metric.LEVEL.value, 5)),
    AchievementDefinition("level_10", "Dedicated", "Reach Level 10", "🌟",
                          ThresholdRule(Metric.LEVEL.value, 10)),
    AchievementDefinition("level_20", "Habit Hero", "Reach Level 20", "👑",
                          ThresholdRule(Metric.LEVEL.value, 20)),
    AchievementDefinition("habits_10", "Task Tackler", "Complete 10 habits", "✅",
                          ThresholdRule(Metric.TOTAL_COMPLETED.value, 10)),
    AchievementDefinition("habits_50", "Habit Hunter", "Complete 50 habits", "🏆",
                          ThresholdRule(Metric.TOTAL_COMPLETED.value, 50)),
    AchievementDefinition("habits_100", "Century Club", "Complete 100 habits", "💯",
                          ThresholdRule(Metric.TOTAL_COMPLETED.value, 100)),
    AchievementDefinition("perfect_week", "Perfect Week", "Complete all habits for 7 days", "🎖️",
                          ThresholdRule(Metric.PERFECT_WEEKS.value, 1)),
    AchievementDefinition("early_bird", "Early Bird", "Complete a habit before 8 AM", "🌅",
                          EventTriggeredRule(Trigger.EARLY_BIRD.value)),
    AchievementDefinition("night_owl", "Night Owl", "Complete a habit after 10 PM", "🌙",
                          EventTriggeredRule(Trigger.NIGHT_OWL.value)),
    AchievementDefinition("multi_habit", "Multitasker", "Track 5 habits at once", "🎪",
                          ThresholdRule(Metric.ENABLED_HABITS.value, 5)),
    AchievementDefinition("comeback", "Comeback Kid", "Rebuild a streak after losing it", "💪",
                          EventTriggeredRule(Trigger.COMEBACK.value)),
    AchievementDefinition("xp_500", "XP Collector", "Earn 500 XP total", "⚡",
                          ThresholdRule(Metric.TOTAL_XP.value, 500)),
    AchievementDefinition("xp_1000", "XP Master", "Earn 1000 XP total", "🔮",
                          ThresholdRule(Metric.TOTAL_XP.value, 1000)),
]

@dataclass
class AchievementStatus:
    """Достижение с текущим прогрессом"""
    definition: AchievementDefinition
    unlocked: bool
    progress: int
    progress_percent: int

    @property
    def id(self) -> str:
        return self.definition.id

    def to_dict(self) -> Dict[str, Any]:
        data = self.definition.to_dict()
        data.update({
            'unlocked': self.unlocked,
            'progress': self.progress,
            'progress_percent': self.progress_percent
        })
        return data

def progress_percent(progress: int, target: int) -> int:
    """Процент с округлением половины вверх"""
    if target <= 0:
        return 100
    return int(progress * 100 / target + 0.5)

# ===== ENGINE =====

class AchievementEngine:
    """Проверка и разблокировка достижений"""

    def __init__(self, store, clock: Optional[Clock] = None,
                 definitions: Optional[Iterable[AchievementDefinition]] = None):
        self.store = store
        self.clock = clock or make_clock()
        self.definitions: List[AchievementDefinition] = list(definitions or DEFINITIONS)
        self._by_id = {d.id: d for d in self.definitions}

    def _safe_evaluate(self, definition: AchievementDefinition, doc: Document) -> Optional[RuleResult]:
        try:
            return evaluate_rule(definition.rule, doc)
        except Exception as e:
            logger.error(f"❌ Failed to evaluate achievement {definition.id}: {e}")
            return None

    def check_all(self) -> List[AchievementDefinition]:
        """Проверить все еще не полученные достижения

        Оценка и разблокировка идут в одной транзакции по одному снимку документа.
        """

        def mutator(doc: Document) -> List[AchievementDefinition]:
            unlocked = []
            for definition in self.definitions:
                if definition.id in doc.achievements:
                    continue
                result = self._safe_evaluate(definition, doc)
                if result is not None and result.satisfied and doc.unlock(definition.id):
                    unlocked.append(definition)
            return unlocked

        unlocked = self.store.update(mutator)
        for definition in unlocked:
            logger.info(f"🏆 Achievement unlocked: {definition.icon} {definition.name}")
        return unlocked

    def observe_completion(self, habit_id: str, completed_at: Optional[datetime] = None) -> List[str]:
        """Зафиксировать события выполнения (время суток, возвращение серии)"""
        moment = completed_at or self.clock()
        observed_at = moment.isoformat()

        def mutator(doc: Document) -> List[str]:
            state = doc.achievement_state
            observed = []

            if moment.hour < EARLY_BIRD_HOUR and state.record_trigger(Trigger.EARLY_BIRD.value, observed_at):
                observed.append(Trigger.EARLY_BIRD.value)
            if moment.hour >= NIGHT_OWL_HOUR and state.record_trigger(Trigger.NIGHT_OWL.value, observed_at):
                observed.append(Trigger.NIGHT_OWL.value)

            habit = doc.find_habit(habit_id)
            if habit is not None and habit_id in state.comeback_candidates \
                    and habit.current_streak >= COMEBACK_STREAK:
                state.comeback_candidates.remove(habit_id)
                if state.record_trigger(Trigger.COMEBACK.value, observed_at):
                    observed.append(Trigger.COMEBACK.value)

            return observed

        observed = self.store.update(mutator)
        if observed:
            logger.debug(f"Observed triggers for habit {habit_id}: {observed}")
        return observed

    def observe_streak_breaks(self, habit_ids: Iterable[str]) -> List[str]:
        """Отметить привычки, потерявшие серию от 3 дней, как кандидатов на возвращение"""
        habit_ids = list(habit_ids)
        if not habit_ids:
            return []

        def mutator(doc: Document) -> List[str]:
            state = doc.achievement_state
            added = []
            for habit_id in habit_ids:
                habit = doc.find_habit(habit_id)
                if habit is None or habit.best_streak < COMEBACK_STREAK:
                    continue
                if habit_id not in state.comeback_candidates:
                    state.comeback_candidates.append(habit_id)
                    added.append(habit_id)
            return added

        return self.store.update(mutator)

    def check_all_with_rewards(self, xp_engine, reward: int) -> Tuple[List[AchievementDefinition], bool]:
        """check_all с начислением XP за каждое достижение

        Начисленный XP может открыть новые достижения (xp_500, level_5),
        поэтому проверка повторяется, пока появляются новые.
        """
        unlocked: List[AchievementDefinition] = []
        leveled_up = False

        for _ in range(len(self.definitions)):
            batch = self.check_all()
            if not batch:
                break
            unlocked.extend(batch)
            change = xp_engine.add_xp(reward * len(batch))
            leveled_up = leveled_up or change.leveled_up

        return unlocked, leveled_up

    # ===== READ =====

    def get(self, achievement_id: str) -> Optional[AchievementDefinition]:
        return self._by_id.get(achievement_id)

    def get_all(self) -> List[AchievementStatus]:
        """Все достижения со статусом и прогрессом"""
        doc = self.store.load()
        unlocked_ids = set(doc.achievements) if doc else set()

        statuses = []
        for definition in self.definitions:
            result = self._safe_evaluate(definition, doc) if doc else None
            progress = result.progress if result else 0
            statuses.append(AchievementStatus(
                definition=definition,
                unlocked=definition.id in unlocked_ids,
                progress=progress,
                progress_percent=progress_percent(progress, definition.target)
            ))
        return statuses

    def get_unlocked_count(self) -> int:
        doc = self.store.load()
        if doc is None:
            return 0
        return len([a for a in doc.achievements if a in self._by_id])

    def get_total_count(self) -> int:
        return len(self.definitions)

__all__ = [
    'Metric', 'Trigger',
    'RuleResult', 'AchievementRule', 'ThresholdRule', 'AnyHabitStreakRule', 'EventTriggeredRule',
    'rule_from_dict', 'evaluate_rule',
    'AchievementDefinition', 'DEFINITIONS', 'AchievementStatus', 'progress_percent',
    'AchievementEngine'
]

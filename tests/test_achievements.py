"""Достижения: таблица правил, вычислитель, события и разблокировка."""

from datetime import datetime

import pytest
import pytz

from core.achievements import (
    DEFINITIONS, AchievementDefinition, AchievementEngine, AchievementRule,
    AnyHabitStreakRule, EventTriggeredRule, ThresholdRule, Trigger,
    evaluate_rule, progress_percent, rule_from_dict
)
from core.models import Document, Habit, Stats, ValidationError
from database.manager import MemoryDocumentStore


class UnsupportedRule(AchievementRule):
    kind = "unsupported"

    @property
    def target(self) -> int:
        return 1

    def to_dict(self):
        return {"kind": self.kind}


def _doc(**stats) -> Document:
    return Document(stats=Stats(**stats))


def test_threshold_rule_progress_is_capped_at_target():
    rule = ThresholdRule("total_completed", 10)

    assert evaluate_rule(rule, _doc(total_completed=4)).progress == 4
    result = evaluate_rule(rule, _doc(total_completed=25))
    assert result.satisfied is True
    assert result.progress == 10


def test_level_threshold_uses_derived_level():
    rule = ThresholdRule("level", 5)

    assert evaluate_rule(rule, _doc(total_xp=399)).satisfied is False
    assert evaluate_rule(rule, _doc(total_xp=400)).satisfied is True


def test_any_habit_streak_rule_counts_best_streak():
    habit = Habit.create("Read", created_date="2025-01-01")
    habit.best_streak = 8
    habit.current_streak = 2
    doc = Document(habits=[habit])

    result = evaluate_rule(AnyHabitStreakRule(7), doc)

    assert result.satisfied is True
    assert result.progress == 2


def test_event_rule_reads_observed_triggers():
    doc = Document()
    rule = EventTriggeredRule(Trigger.NIGHT_OWL.value)
    assert evaluate_rule(rule, doc).satisfied is False

    doc.achievement_state.record_trigger("night_owl", "2025-01-15T23:00:00+00:00")
    assert evaluate_rule(rule, doc).satisfied is True


def test_unsupported_rule_raises():
    with pytest.raises(ValidationError):
        evaluate_rule(UnsupportedRule(), Document())


def test_invalid_rules_are_rejected():
    with pytest.raises(ValidationError):
        ThresholdRule("karma", 3)
    with pytest.raises(ValidationError):
        EventTriggeredRule("lunch_break")
    with pytest.raises(ValidationError):
        rule_from_dict({"kind": "script", "code": "True"})


def test_definitions_are_serializable():
    assert len(DEFINITIONS) == 17
    assert len({d.id for d in DEFINITIONS}) == 17

    for definition in DEFINITIONS:
        restored = AchievementDefinition.from_dict(definition.to_dict())
        assert restored == definition


def test_progress_percent_rounds_half_up():
    assert progress_percent(1, 8) == 13
    assert progress_percent(2, 3) == 67
    assert progress_percent(0, 5) == 0


def test_five_enabled_habits_unlock_multitasker(manager, add_habit):
    for i in range(5):
        add_habit(f"Habit {i}")

    unlocked = manager.achievements.check_all()

    assert [d.id for d in unlocked] == ["multi_habit"]
    assert manager.achievements.check_all() == []


def test_xp_500_unlocks_exactly_once(manager, store):
    store.update(lambda doc: setattr(doc.stats, "total_xp", 510))

    first = manager.achievements.check_all()
    second = manager.achievements.check_all()

    assert "xp_500" in [d.id for d in first]
    assert second == []
    assert store.load().achievements.count("xp_500") == 1


def test_rewards_loop_until_no_new_unlocks(manager, store):
    # 480 XP + 25 за level_5 = 505 -> открывается xp_500
    store.update(lambda doc: setattr(doc.stats, "total_xp", 480))

    unlocked, leveled_up = manager.achievements.check_all_with_rewards(manager.xp, 25)

    assert [d.id for d in unlocked] == ["level_5", "xp_500"]
    assert leveled_up is True
    assert store.load().stats.total_xp == 530


def test_broken_rule_does_not_stop_other_checks(store, clock):
    definitions = [
        AchievementDefinition("broken", "Broken", "", "❓", UnsupportedRule()),
        AchievementDefinition("always", "Always", "", "✅", ThresholdRule("level", 1)),
    ]
    engine = AchievementEngine(store, clock, definitions)

    unlocked = engine.check_all()

    assert [d.id for d in unlocked] == ["always"]


def test_observe_completion_time_of_day(manager, add_habit):
    habit = add_habit()
    early = pytz.UTC.localize(datetime(2025, 1, 15, 7, 59))
    late = pytz.UTC.localize(datetime(2025, 1, 15, 22, 0))
    noon = pytz.UTC.localize(datetime(2025, 1, 15, 12, 0))

    assert manager.achievements.observe_completion(habit.id, noon) == []
    assert manager.achievements.observe_completion(habit.id, early) == ["early_bird"]
    assert manager.achievements.observe_completion(habit.id, early) == []
    assert manager.achievements.observe_completion(habit.id, late) == ["night_owl"]


def test_comeback_requires_rebuilt_streak(manager, add_habit, store):
    habit = add_habit(current_streak=0, best_streak=5)
    short = add_habit(current_streak=0, best_streak=2)

    assert manager.achievements.observe_streak_breaks([habit.id, short.id]) == [habit.id]

    store.update(lambda doc: setattr(doc.require_habit(habit.id), "current_streak", 2))
    assert manager.achievements.observe_completion(habit.id) == []

    store.update(lambda doc: setattr(doc.require_habit(habit.id), "current_streak", 3))
    assert manager.achievements.observe_completion(habit.id) == ["comeback"]
    assert store.load().achievement_state.comeback_candidates == []


def test_get_all_reports_progress(manager, store):
    store.update(lambda doc: setattr(doc.stats, "total_completed", 1))

    statuses = {s.id: s for s in manager.achievements.get_all()}

    assert statuses["habits_10"].progress == 1
    assert statuses["habits_10"].progress_percent == 10
    assert statuses["habits_10"].unlocked is False
    assert statuses["early_bird"].to_dict()["target"] == 1


def test_unlocked_count_ignores_unknown_ids(manager, store):
    store.update(lambda doc: doc.achievements.extend(["first_habit", "retired_badge"]))

    assert manager.achievements.get_unlocked_count() == 1
    assert manager.achievements.get_total_count() == 17
    assert manager.achievements.get("comeback").name == "Comeback Kid"
    assert manager.achievements.get("retired_badge") is None


class InterleavedWriteStore(MemoryDocumentStore):
    """Хранилище, где перед транзакцией успевает пройти чужая запись."""

    def __init__(self, pending, clock):
        super().__init__(clock=clock)
        self.pending = pending

    def update(self, mutator):
        if self.pending is not None:
            write, self.pending = self.pending, None
            super().update(write)
        return super().update(mutator)


def test_check_all_judges_the_document_it_writes(clock):
    store = InterleavedWriteStore(lambda doc: setattr(doc.stats, "total_completed", 1), clock)
    store.initialize()
    engine = AchievementEngine(store, clock)

    unlocked = engine.check_all()

    assert [d.id for d in unlocked] == ["first_habit"]
    assert store.load().achievements == ["first_habit"]

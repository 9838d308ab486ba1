"""Серии: подряд идущие дни, пропуски, отмена и поиск прерванных серий."""

import pytest

from core.models import Habit, HabitNotFoundError
from core.streaks import STREAK_MILESTONES, get_streak_status, was_active_on_date


def test_consecutive_daily_completions_grow_streak(manager, clock, load_habit):
    habit = manager.habits.add("Read")

    for _ in range(5):
        manager.habits.complete(habit.id)
        clock.advance(days=1)

    stored = load_habit(habit.id)
    assert stored.current_streak == 5
    assert stored.best_streak == 5


def test_gap_resets_streak_to_one(manager, clock, load_habit):
    habit = manager.habits.add("Run")
    manager.habits.complete(habit.id)
    clock.advance(days=1)
    manager.habits.complete(habit.id)

    clock.advance(days=3)
    manager.habits.complete(habit.id)

    stored = load_habit(habit.id)
    assert stored.current_streak == 1
    assert stored.best_streak == 2


def test_second_completion_same_day_is_ignored(manager):
    habit = manager.habits.add("Stretch")

    first = manager.streaks.complete(habit.id)
    second = manager.streaks.complete(habit.id)

    assert first.current_streak == 1
    assert second.changed is False
    assert second.current_streak == 1


def test_complete_reports_broken_running_streak(manager, add_habit):
    habit = add_habit(current_streak=4, best_streak=4, last_completed_date="2025-01-10")

    update = manager.streaks.complete(habit.id)

    assert update.streak_broken is True
    assert update.previous_streak == 4
    assert update.current_streak == 1
    assert update.best_streak == 4


def test_complete_unknown_habit_raises(manager):
    with pytest.raises(HabitNotFoundError):
        manager.streaks.complete("missing")


def test_uncomplete_with_yesterday_completed_decrements(manager, clock, load_habit):
    habit = manager.habits.add("Meditate")
    manager.habits.complete(habit.id)
    clock.advance(days=1)
    manager.habits.complete(habit.id)

    assert manager.habits.uncomplete(habit.id) is True

    stored = load_habit(habit.id)
    assert stored.current_streak == 1
    assert stored.last_completed_date == "2025-01-15"
    assert stored.completed_dates == ["2025-01-15"]


def test_uncomplete_without_yesterday_resets_to_zero(manager, load_habit):
    habit = manager.habits.add("Journal")
    manager.habits.complete(habit.id)

    manager.habits.uncomplete(habit.id)

    stored = load_habit(habit.id)
    assert stored.current_streak == 0
    assert stored.last_completed_date is None


def test_uncomplete_is_noop_when_last_completion_is_not_today(manager, add_habit, load_habit):
    habit = add_habit(current_streak=2, best_streak=2, last_completed_date="2025-01-14",
                      completed_dates=["2025-01-13", "2025-01-14"])

    update = manager.streaks.uncomplete(habit.id)

    assert update.changed is False
    assert load_habit(habit.id).current_streak == 2


def test_check_broken_streaks_resets_missed_daily_habit(manager, add_habit, load_habit):
    missed = add_habit("Missed", current_streak=3, best_streak=3, last_completed_date="2025-01-13")
    kept = add_habit("Kept", current_streak=3, best_streak=3, last_completed_date="2025-01-14")

    reset = manager.streaks.check_broken_streaks()

    assert reset == [missed.id]
    assert load_habit(missed.id).current_streak == 0
    assert load_habit(missed.id).best_streak == 3
    assert load_habit(kept.id).current_streak == 3


def test_rest_day_does_not_break_custom_streak(manager, add_habit, load_habit):
    # Только понедельники; вчера (вторник) - день отдыха
    habit = add_habit(frequency="custom", scheduled_days=[1], current_streak=3,
                      best_streak=3, last_completed_date="2025-01-13")

    assert manager.streaks.check_broken_streaks() == []
    assert load_habit(habit.id).current_streak == 3


def test_weekly_habit_without_days_is_due_on_monday(manager, clock, add_habit, load_habit):
    clock.set(2025, 1, 14)  # вторник, вчера - понедельник
    habit = add_habit(frequency="weekly", current_streak=2, best_streak=2,
                      last_completed_date="2025-01-06")

    assert manager.streaks.check_broken_streaks() == [habit.id]
    assert load_habit(habit.id).current_streak == 0


def test_disabled_habits_are_not_reset(manager, add_habit, load_habit):
    habit = add_habit(enabled=False, current_streak=5, best_streak=5,
                      last_completed_date="2025-01-01")

    assert manager.streaks.check_broken_streaks() == []
    assert load_habit(habit.id).current_streak == 5


def test_was_active_on_date_by_frequency():
    daily = Habit.create("Daily", created_date="2025-01-01")
    weekly = Habit.create("Weekly", created_date="2025-01-01", frequency="weekly")
    custom = Habit.create("Weekend", created_date="2025-01-01", frequency="custom",
                          scheduled_days=[0, 6])

    assert was_active_on_date(daily, "2025-01-14")
    assert was_active_on_date(weekly, "2025-01-13")      # понедельник
    assert not was_active_on_date(weekly, "2025-01-14")
    assert was_active_on_date(custom, "2025-01-12")      # воскресенье
    assert was_active_on_date(custom, "2025-01-18")      # суббота
    assert not was_active_on_date(custom, "2025-01-15")

    daily.frequency = "monthly"
    assert was_active_on_date(daily, "2025-01-15")


def test_read_helpers(manager, add_habit):
    add_habit("A", current_streak=7, best_streak=10)
    add_habit("B", current_streak=2, best_streak=2)
    add_habit("C", current_streak=9, best_streak=9, enabled=False)

    assert manager.streaks.get_best_overall_streak() == 10
    assert manager.streaks.get_current_best_streak() == 9
    assert manager.streaks.get_total_streak_days() == 18

    board = manager.streaks.get_streak_leaderboard()
    assert [item["name"] for item in board] == ["A", "B"]

    milestones = manager.streaks.check_streak_milestones()
    assert [m["milestone"] for m in milestones] == [7]


def test_get_streak_info(manager, add_habit):
    habit = add_habit(current_streak=3, best_streak=4, last_completed_date="2025-01-14")

    info = manager.streaks.get_streak_info(habit.id)

    assert info["current"] == 3
    assert info["best"] == 4
    assert info["days_since_last"] == 1
    assert info["status"]["label"] == "Building!"
    assert manager.streaks.get_streak_info("missing")["current"] == 0


def test_streak_status_labels():
    assert get_streak_status(0)["label"] == ""
    assert get_streak_status(1)["emoji"] == "🌱"
    assert get_streak_status(30)["label"] == "On Fire!"
    assert STREAK_MILESTONES[0] == 3

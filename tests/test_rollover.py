"""Дневной сброс."""

WEEK = ["2025-01-12", "2025-01-13", "2025-01-14", "2025-01-15",
        "2025-01-16", "2025-01-17", "2025-01-18"]


def test_no_reset_on_initialization_day(manager):
    assert manager.rollover.needs_reset() is False

    result = manager.rollover.check_daily_reset()

    assert result.performed is False
    assert result.date == "2025-01-15"


def test_rollover_runs_once_per_day(manager, clock, add_habit, store, load_habit):
    habit = add_habit(current_streak=3, best_streak=3, last_completed_date="2025-01-14",
                      completed_dates=["2025-01-12", "2025-01-13", "2025-01-14"])
    clock.advance(days=1)
    assert manager.rollover.needs_reset() is True

    first = manager.rollover.check_daily_reset()

    assert first.performed is True
    assert first.previous_reset_date == "2025-01-15"
    assert first.broken_streaks == [habit.id]
    assert load_habit(habit.id).current_streak == 0
    assert store.load().last_reset_date == "2025-01-16"
    assert store.load().achievement_state.comeback_candidates == [habit.id]

    # Серию снова подняли вручную: повторный сброс в тот же день ее не трогает
    store.update(lambda doc: setattr(doc.require_habit(habit.id), "current_streak", 3))
    second = manager.rollover.check_daily_reset()

    assert second.performed is False
    assert load_habit(habit.id).current_streak == 3


def test_rollover_awards_perfect_week_and_achievement(manager, clock, add_habit, store):
    add_habit("Water", completed_dates=list(WEEK))
    clock.set(2025, 1, 18)

    result = manager.rollover.check_daily_reset()

    assert result.perfect_week is True
    assert result.achievements == ["perfect_week"]
    doc = store.load()
    assert doc.stats.perfect_weeks == 1
    assert doc.stats.total_xp == 55

    clock.advance(hours=6)
    assert manager.rollover.check_daily_reset().performed is False
    assert store.load().stats.total_xp == 55


def test_rollover_result_to_dict(manager, clock):
    clock.advance(days=2)

    data = manager.rollover.check_daily_reset().to_dict()

    assert data["performed"] is True
    assert data["date"] == "2025-01-17"
    assert data["broken_streaks"] == []
    assert data["perfect_week"] is False

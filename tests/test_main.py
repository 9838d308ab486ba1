"""Консольные команды."""

import json

import pytest

import main


@pytest.fixture
def cli(config_env, monkeypatch, tmp_path):
    monkeypatch.setattr(main, "setup_logging", lambda config: None)

    def _habit_ids():
        data = json.loads((tmp_path / "data" / "solohabits_data.json").read_text(encoding="utf-8"))
        return [h["id"] for h in data["habits"]]

    return _habit_ids


def test_add_complete_and_undo(cli, capsys):
    assert main.main(["add", "Read", "--icon", "📚"]) == 0
    habit_id = cli()[0]

    assert main.main(["complete", habit_id[:8]]) == 0
    output = capsys.readouterr().out
    assert "+10 XP" in output
    assert "First Steps" in output

    assert main.main(["complete", habit_id]) == 0
    assert "Already completed today" in capsys.readouterr().out

    assert main.main(["undo", habit_id[:8]]) == 0
    assert main.main(["undo", habit_id[:8]]) == 1


def test_status_json(cli, capsys):
    main.main(["add", "Read"])
    main.main(["add", "Gym", "--frequency", "custom", "--days"])
    capsys.readouterr()

    assert main.main(["status", "--json"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["profile"]["level"] == 1
    assert data["today"]["total"] == 1


def test_unknown_habit_is_an_error(cli, capsys):
    assert main.main(["complete", "nope"]) == 1
    assert "Habit not found" in capsys.readouterr().err


def test_invalid_config(config_env, monkeypatch, capsys):
    monkeypatch.setattr(main, "setup_logging", lambda config: None)
    config_env(TIMEZONE="Nowhere/City")

    assert main.main(["status"]) == 2
    assert "TIMEZONE" in capsys.readouterr().err


def test_export_and_import(cli, capsys, tmp_path):
    assert main.main(["export", "--format", "csv"]) == 1

    main.main(["add", "Read"])
    assert main.main(["export", "--output", str(tmp_path / "out")]) == 0
    exported = list((tmp_path / "out").glob("solohabits-backup-*.json"))
    assert len(exported) == 1

    assert main.main(["export", "--format", "csv"]) == 0
    assert list((tmp_path / "exports").glob("solohabits-habits-*.csv"))

    main.main(["add", "Run"])
    assert len(cli()) == 2
    assert main.main(["import", str(exported[0])]) == 0
    assert len(cli()) == 1
    assert "Imported 1 habits" in capsys.readouterr().out


def test_achievements_and_rollover(cli, capsys):
    assert main.main(["achievements"]) == 0
    assert "0/17 unlocked" in capsys.readouterr().out

    assert main.main(["rollover"]) == 0
    assert json.loads(capsys.readouterr().out)["performed"] is False

"""Хранилище документа: транзакции, атомарная запись, восстановление."""

import json

import pytest

from database.backup import BackupManager
from database.manager import DatabaseError, JsonDocumentStore, MemoryDocumentStore


class FailingStore(MemoryDocumentStore):
    def _write_raw(self, text):
        raise OSError("disk full")


def test_empty_store_loads_nothing(clock):
    store = MemoryDocumentStore(clock=clock)

    assert store.load() is None

    doc = store.initialize()
    assert doc.profile.join_date == "2025-01-15"
    assert doc.last_reset_date == "2025-01-15"
    assert store.load().version == "1.1.0"


def test_update_returns_mutator_result(store):
    result = store.update(lambda doc: doc.achievements.append("first_habit") or "ok")

    assert result == "ok"
    assert store.load().achievements == ["first_habit"]


def test_failed_mutator_leaves_document_untouched(store):
    def mutator(doc):
        doc.stats.total_xp = 999
        raise ValueError("boom")

    with pytest.raises(ValueError):
        store.update(mutator)

    assert store.load().stats.total_xp == 0


def test_failed_save_raises(clock):
    store = FailingStore(clock=clock)

    assert store.save(store.new_document()) is False
    with pytest.raises(DatabaseError):
        store.update(lambda doc: None)


def test_corrupted_data_loads_as_missing(store):
    store.set_raw("{not json")
    assert store.load() is None

    store.set_raw("[1, 2, 3]")
    assert store.load() is None

    doc = store.initialize()
    assert doc.habits == []
    assert store.load() is not None


def test_reset_and_clear(store):
    store.update(lambda doc: setattr(doc.stats, "total_xp", 40))

    assert store.reset() is True
    assert store.load().stats.total_xp == 0

    assert store.get_storage_info()["bytes"] > 0
    assert store.clear() is True
    assert store.load() is None
    assert store.get_storage_info()["bytes"] == 0


def test_json_store_writes_atomically(tmp_path, clock):
    path = tmp_path / "data" / "solohabits_data.json"
    store = JsonDocumentStore(path, clock=clock)

    store.initialize()
    store.update(lambda doc: setattr(doc.profile, "username", "Алиса"))

    assert path.exists()
    assert not path.with_suffix(".json.tmp").exists()
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["profile"]["username"] == "Алиса"
    assert data["version"] == "1.1.0"


def test_json_store_restores_latest_backup(tmp_path, clock):
    path = tmp_path / "solohabits_data.json"
    backups = BackupManager(tmp_path / "backups", max_backups=5)
    store = JsonDocumentStore(path, backup_manager=backups, clock=clock)
    store.initialize()
    store.update(lambda doc: setattr(doc.profile, "username", "Saved"))
    assert store.backup("daily") is not None

    path.write_text("{broken", encoding="utf-8")
    doc = store.initialize()

    assert doc.profile.username == "Saved"
    names = [b["name"] for b in backups.list_backups()]
    assert any(name.startswith("corrupted") for name in names)


def test_unloadable_document_is_backed_up_before_defaults(tmp_path, clock):
    path = tmp_path / "solohabits_data.json"
    path.write_text(json.dumps({
        "habits": [{"id": "h1", "name": "Read"}],
        "profile": {"username": "Kept"},
        "stats": {"totalXP": 340},
        "weeklyData": {"2025-01-05": True},
        "version": "1.1.0"
    }), encoding="utf-8")
    backups = BackupManager(tmp_path / "backups")
    store = JsonDocumentStore(path, backup_manager=backups, clock=clock)

    doc = store.initialize()

    assert doc.habits == []
    saved = [b for b in backups.list_backups() if b["name"].startswith("corrupted")]
    assert len(saved) == 1
    original = json.loads(backups.read_backup(saved[0]["path"]))
    assert original["stats"]["totalXP"] == 340
    assert original["habits"][0]["id"] == "h1"


def test_unloadable_document_restores_previous_backup(tmp_path, clock):
    path = tmp_path / "solohabits_data.json"
    backups = BackupManager(tmp_path / "backups")
    store = JsonDocumentStore(path, backup_manager=backups, clock=clock)
    store.initialize()
    store.update(lambda doc: setattr(doc.stats, "total_xp", 120))
    store.backup("daily")

    path.write_text(json.dumps({"habits": [], "profile": {}, "stats": {"totalXP": "lots"}}),
                    encoding="utf-8")

    assert store.initialize().stats.total_xp == 120


def test_update_refuses_to_overwrite_unreadable_data(store):
    store.set_raw(json.dumps({"habits": [], "weeklyData": {"2025-01-05": True}, "version": "1.1.0"}))

    with pytest.raises(DatabaseError):
        store.update(lambda doc: setattr(doc.stats, "total_xp", 10))

    assert "weeklyData" in json.loads(store._read_raw())


def test_legacy_document_is_backed_up_before_migration(tmp_path, clock):
    path = tmp_path / "solohabits_data.json"
    path.write_text(json.dumps({
        "habits": [{"id": "h1", "name": "Read", "days": [1], "frequency": "custom"}],
        "profile": {"username": "Old"},
        "achievements": ["first_habit", "early_bird_unlocked"]
    }), encoding="utf-8")
    backups = BackupManager(tmp_path / "backups")
    store = JsonDocumentStore(path, backup_manager=backups, clock=clock)

    doc = store.initialize()

    assert doc.version == "1.1.0"
    assert doc.habits[0].scheduled_days == [1]
    assert doc.achievements == ["first_habit"]
    assert "early_bird" in doc.achievement_state.triggers
    assert [b["name"].split("_")[0] for b in backups.list_backups()] == ["pre"]
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == "1.1.0"


def test_backup_manager_keeps_limit(tmp_path):
    source = tmp_path / "doc.json"
    source.write_text("{}", encoding="utf-8")
    backups = BackupManager(tmp_path / "backups", max_backups=2)

    for _ in range(4):
        backups.create_backup(source)

    assert len(backups.list_backups()) == 2
    assert backups.create_backup(tmp_path / "missing.json") is None


def test_backup_roundtrip_uncompressed(tmp_path):
    source = tmp_path / "doc.json"
    source.write_text('{"a": 1}', encoding="utf-8")
    backups = BackupManager(tmp_path / "backups")

    backup = backups.create_backup(source, compressed=False)
    source.write_text("{}", encoding="utf-8")

    assert backups.read_backup(backup) == '{"a": 1}'
    assert backups.restore_backup(backup, source) is True
    assert source.read_text(encoding="utf-8") == '{"a": 1}'

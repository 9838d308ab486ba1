# services/data_export.py

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from core.models import Document, ValidationError
from database.manager import DatabaseError, DocumentStore, ImportValidationError
from database.migrations import DocumentMigration, default_document
from utils.datetime_utils import Clock, make_clock, today, today_str

logger = logging.getLogger(__name__)

APP_NAME = "SoloHabits"
EXPORT_METADATA_KEYS = ("exportDate", "appName")
REQUIRED_KEYS = ("habits", "profile")

CSV_FIELDS = [
    "id", "name", "frequency", "enabled", "currentStreak", "bestStreak",
    "lastCompletedDate", "completions", "createdDate"
]

def export_document(store: DocumentStore, clock: Optional[Clock] = None) -> str:
    """Документ + метаданные экспорта в виде JSON"""
    clock = clock or make_clock()
    doc = store.load() or store.new_document()

    data: Dict[str, Any] = doc.to_dict()
    data.update({
        "exportDate": clock().isoformat(),
        "appName": APP_NAME,
        "version": doc.version
    })
    return json.dumps(data, ensure_ascii=False, indent=2)

def import_document(store: DocumentStore, text: str, clock: Optional[Clock] = None) -> Document:
    """Проверить, слить с умолчаниями, мигрировать и сохранить импорт"""
    clock = clock or make_clock()

    try:
        imported = json.loads(text)
    except ValueError as e:
        raise ImportValidationError(f"Invalid backup file: {e}")

    if not isinstance(imported, dict):
        raise ImportValidationError("Invalid data format: expected a JSON object")

    missing = [key for key in REQUIRED_KEYS if imported.get(key) is None]
    if missing:
        raise ImportValidationError(f"Invalid data format: missing {', '.join(missing)}")
    if not isinstance(imported["habits"], list):
        raise ImportValidationError("Invalid data format: habits must be a list")
    if not isinstance(imported["profile"], dict):
        raise ImportValidationError("Invalid data format: profile must be an object")

    current_day = today(clock)
    merged = default_document(current_day)
    merged.update(imported)
    for key in EXPORT_METADATA_KEYS:
        merged.pop(key, None)
    # Экспорт без версии - формат 1.0.0, как и при загрузке из хранилища
    merged[DocumentMigration.VERSION_KEY] = DocumentMigration.get_version(imported)

    try:
        document = Document.from_dict(DocumentMigration.migrate(merged, current_day))
    except (ValidationError, TypeError, ValueError) as e:
        raise ImportValidationError(f"Invalid data format: {e}")

    store.backup("pre_import")
    if not store.save(document):
        raise DatabaseError("Failed to save imported data")

    logger.info(f"📥 Imported {len(document.habits)} habits")
    return document

def export_to_file(store: DocumentStore, export_dir: Path, clock: Optional[Clock] = None) -> Path:
    clock = clock or make_clock()
    export_dir = Path(export_dir)
    export_dir.mkdir(parents=True, exist_ok=True)

    filename = export_dir / f"solohabits-backup-{today_str(clock)}.json"
    with open(filename, "w", encoding="utf-8") as f:
        f.write(export_document(store, clock))

    logger.info(f"📤 Data exported to {filename}")
    return filename

def import_from_file(store: DocumentStore, path: Path, clock: Optional[Clock] = None) -> Document:
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ImportValidationError(f"Cannot read {path}: {e}")
    return import_document(store, text, clock)

def export_habits_to_csv(store: DocumentStore, export_dir: Path, clock: Optional[Clock] = None) -> Optional[Path]:
    """Сводка по привычкам в CSV (None, если привычек нет)"""
    clock = clock or make_clock()
    doc = store.load() or store.new_document()
    if not doc.habits:
        return None

    export_dir = Path(export_dir)
    export_dir.mkdir(parents=True, exist_ok=True)
    filename = export_dir / f"solohabits-habits-{today_str(clock)}.csv"

    rows = []
    for habit in sorted(doc.habits, key=lambda h: h.order):
        data = habit.to_dict()
        rows.append({
            "id": data["id"],
            "name": data["name"],
            "frequency": data["frequency"],
            "enabled": data["enabled"],
            "currentStreak": data["currentStreak"],
            "bestStreak": data["bestStreak"],
            "lastCompletedDate": data["lastCompletedDate"] or "",
            "completions": len(data["completedDates"]),
            "createdDate": data["createdDate"] or ""
        })

    with open(filename, "w", newline="", encoding="utf-8") as f:
        dict_writer = csv.DictWriter(f, CSV_FIELDS)
        dict_writer.writeheader()
        dict_writer.writerows(rows)
    return filename

__all__ = [
    'export_document',
    'import_document',
    'export_to_file',
    'import_from_file',
    'export_habits_to_csv'
]

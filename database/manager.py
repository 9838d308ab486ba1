#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SoloHabits - Document Store
Хранилище единственного документа: атомарное чтение, запись и транзакции

Версия: 1.1.0
Дата: 2026-10-17
"""

import os
import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TypeVar
import logging

from core.models import Document, ValidationError
from database.backup import BackupManager
from database.migrations import DocumentMigration
from utils.datetime_utils import Clock, make_clock, today

logger = logging.getLogger(__name__)

R = TypeVar("R")

# ===== EXCEPTIONS =====

class DatabaseError(Exception):
    """Базовое исключение для ошибок хранилища"""
    pass

class ImportValidationError(DatabaseError):
    """Импортируемые данные имеют неверный формат"""
    pass

# ===== STORES =====

class DocumentStore(ABC):
    """Базовое хранилище: load / save / update поверх сырого JSON"""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or make_clock()
        self._lock = threading.RLock()

    # ----- сырой уровень -----

    @abstractmethod
    def _read_raw(self) -> Optional[str]:
        """Прочитать сериализованный документ (None если данных нет)"""

    @abstractmethod
    def _write_raw(self, text: str) -> None:
        """Записать сериализованный документ"""

    @abstractmethod
    def _delete_raw(self) -> None:
        """Удалить сохраненные данные"""

    def backup(self, label: str = "backup") -> Optional[Path]:
        """Резервная копия текущих данных (если хранилище поддерживает)"""
        return None

    def restore_latest_backup(self) -> bool:
        return False

    # ----- контракт хранилища -----

    def _load_raw_dict(self) -> Optional[Dict[str, Any]]:
        raw = self._read_raw()
        if raw is None:
            return None
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Stored document is not a JSON object")
        return data

    def _parse_document(self, raw: str) -> Document:
        """Разобрать, мигрировать и собрать документ из сырого JSON"""
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("Stored document is not a JSON object")
        return Document.from_dict(DocumentMigration.migrate(data, today(self.clock)))

    def load(self) -> Optional[Document]:
        """Загрузить документ; ошибки чтения трактуются как отсутствие данных"""
        try:
            raw = self._read_raw()
            if raw is None:
                return None
            return self._parse_document(raw)
        except (OSError, ValueError, TypeError, AttributeError, ValidationError) as e:
            logger.error(f"Failed to load data: {e}")
            return None

    def has_data(self) -> bool:
        try:
            return self._read_raw() is not None
        except OSError:
            return False

    def save(self, document: Document) -> bool:
        """Сохранить документ целиком"""
        try:
            text = json.dumps(document.to_dict(), ensure_ascii=False, indent=2)
            self._write_raw(text)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save data: {e}")
            return False

    def update(self, mutator: Callable[[Document], R]) -> R:
        """Транзакция: прочитать последний документ -> изменить -> записать

        Если mutator выбрасывает исключение, сохраненный документ не меняется.
        Нечитаемые данные не перезаписываются: сначала нужен initialize().
        """
        with self._lock:
            document = self.load()
            if document is None:
                if self.has_data():
                    raise DatabaseError("Stored document is unreadable, run initialize() to recover")
                document = self.new_document()
            result = mutator(document)
            if not self.save(document):
                raise DatabaseError("Failed to persist document")
            return result

    def new_document(self) -> Document:
        return Document.create(today(self.clock))

    def initialize(self) -> Document:
        """Создать документ по умолчанию или мигрировать существующий"""
        with self._lock:
            try:
                raw = self._load_raw_dict()
            except (OSError, ValueError) as e:
                logger.error(f"Stored document is corrupted: {e}")
                raw = None
                self._recover_corrupted()

            if raw is not None and DocumentMigration.needs_migration(raw):
                logger.info("Document migration required")
                self.backup("pre_migration")

            document = self.load()
            if document is None and raw is not None:
                # JSON читается, но документ не собирается
                logger.error("Stored document cannot be loaded")
                if self._recover_corrupted():
                    document = self.load()

            if document is None:
                logger.info("No stored document, starting with defaults")
                document = self.new_document()

            self.save(document)
            return document

    def _recover_corrupted(self) -> bool:
        """Сохранить испорченные данные и попробовать восстановить последнюю копию"""
        self.backup("corrupted")
        if self.restore_latest_backup():
            logger.info("Restored document from the latest backup")
            return True
        return False

    def reset(self) -> bool:
        """Сбросить к документу по умолчанию"""
        with self._lock:
            return self.save(self.new_document())

    def clear(self) -> bool:
        """Удалить все данные"""
        with self._lock:
            try:
                self._delete_raw()
                return True
            except OSError as e:
                logger.error(f"Failed to clear data: {e}")
                return False

    def get_storage_info(self) -> Dict[str, Any]:
        raw = self._read_raw() or ""
        size = len(raw.encode("utf-8"))
        return {
            "bytes": size,
            "kb": round(size / 1024, 2),
            "mb": round(size / (1024 * 1024), 4)
        }

class JsonDocumentStore(DocumentStore):
    """Документ в JSON файле с атомарной записью"""

    def __init__(self, path: Path, backup_manager: Optional[BackupManager] = None,
                 clock: Optional[Clock] = None):
        super().__init__(clock)
        self.path = Path(path)
        self.backup_manager = backup_manager

    def _read_raw(self) -> Optional[str]:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def _write_raw(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Атомарное сохранение через временный файл
        temp_file = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                f.write(text)

            # Проверяем целостность записанного файла
            with open(temp_file, "r", encoding="utf-8") as f:
                json.load(f)

            os.replace(temp_file, self.path)
        except (OSError, ValueError):
            if temp_file.exists():
                temp_file.unlink()
            raise

    def _delete_raw(self) -> None:
        if self.path.exists():
            self.path.unlink()

    def backup(self, label: str = "backup") -> Optional[Path]:
        if not self.backup_manager:
            return None
        return self.backup_manager.create_backup(self.path, label=label)

    def restore_latest_backup(self) -> bool:
        """Восстановить последнюю читаемую резервную копию"""
        if not self.backup_manager:
            return False

        for backup in self.backup_manager.list_backups():
            if backup['name'].startswith("corrupted"):
                continue
            try:
                self._parse_document(self.backup_manager.read_backup(Path(backup['path'])))
            except (OSError, ValueError, TypeError, AttributeError, ValidationError) as e:
                logger.warning(f"Skipping unreadable backup {backup['name']}: {e}")
                continue
            if self.backup_manager.restore_backup(Path(backup['path']), self.path):
                return True

        return False

class MemoryDocumentStore(DocumentStore):
    """Документ в памяти (хранится сериализованным, как в файле)"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None, clock: Optional[Clock] = None):
        super().__init__(clock)
        self._raw: Optional[str] = None
        if initial is not None:
            self._raw = json.dumps(initial, ensure_ascii=False)

    def _read_raw(self) -> Optional[str]:
        return self._raw

    def _write_raw(self, text: str) -> None:
        self._raw = text

    def _delete_raw(self) -> None:
        self._raw = None

    def set_raw(self, text: Optional[str]) -> None:
        self._raw = text

__all__ = [
    'DatabaseError',
    'ImportValidationError',
    'DocumentStore',
    'JsonDocumentStore',
    'MemoryDocumentStore'
]

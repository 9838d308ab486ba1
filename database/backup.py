# database/backup.py

import gzip
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

class BackupManager:
    """Менеджер резервных копий файла документа"""

    def __init__(self, backup_dir: Path, max_backups: int = 10):
        self.backup_dir = Path(backup_dir)
        self.max_backups = max_backups

    def create_backup(self, source_file: Path, compressed: bool = True,
                      label: str = "backup") -> Optional[Path]:
        """Создать резервную копию"""
        source_file = Path(source_file)
        if not source_file.exists():
            logger.warning(f"Source file {source_file} does not exist for backup")
            return None

        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S_%f')
            backup_name = f"{label}_{timestamp}.json"

            if compressed:
                backup_path = self.backup_dir / (backup_name + ".gz")
                with open(source_file, 'rb') as f_in:
                    with gzip.open(backup_path, 'wb') as f_out:
                        shutil.copyfileobj(f_in, f_out)
            else:
                backup_path = self.backup_dir / backup_name
                shutil.copy2(source_file, backup_path)

            logger.info(f"💾 Backup created: {backup_path}")
            self._cleanup_old_backups()
            return backup_path

        except OSError as e:
            logger.error(f"Failed to create backup: {e}")
            return None

    def restore_backup(self, backup_path: Path, target_file: Path) -> bool:
        """Восстановить из резервной копии"""
        backup_path = Path(backup_path)
        target_file = Path(target_file)
        if not backup_path.exists():
            logger.error(f"Backup file {backup_path} does not exist")
            return False

        try:
            if backup_path.name.endswith('.gz'):
                with gzip.open(backup_path, 'rb') as f_in:
                    with open(target_file, 'wb') as f_out:
                        shutil.copyfileobj(f_in, f_out)
            else:
                shutil.copy2(backup_path, target_file)

            logger.info(f"Backup restored from {backup_path} to {target_file}")
            return True

        except OSError as e:
            logger.error(f"Failed to restore backup: {e}")
            return False

    def read_backup(self, backup_path: Path) -> str:
        backup_path = Path(backup_path)
        if backup_path.name.endswith('.gz'):
            with gzip.open(backup_path, 'rt', encoding='utf-8') as f:
                return f.read()
        return backup_path.read_text(encoding='utf-8')

    def list_backups(self) -> List[Dict[str, Any]]:
        """Список резервных копий, новые первыми"""
        if not self.backup_dir.exists():
            return []

        backups = []
        for backup_file in self.backup_dir.glob("*.json*"):
            stat = backup_file.stat()
            backups.append({
                'name': backup_file.name,
                'path': str(backup_file),
                'size_kb': round(stat.st_size / 1024, 2),
                'modified': stat.st_mtime,
                'compressed': backup_file.name.endswith('.gz')
            })

        return sorted(backups, key=lambda x: (x['modified'], x['name']), reverse=True)

    def _cleanup_old_backups(self) -> None:
        """Удалить старые резервные копии сверх лимита"""
        for backup in self.list_backups()[self.max_backups:]:
            try:
                Path(backup['path']).unlink()
                logger.info(f"Removed old backup: {backup['name']}")
            except OSError as e:
                logger.error(f"Failed to remove old backup {backup['name']}: {e}")

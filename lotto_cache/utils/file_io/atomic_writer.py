"""
Atomic file writing with backup mechanisms.

The cache storage document is rewritten on every persisted mutation, so a
crash mid-write must never leave a truncated file behind. Writes go to a
temporary file in the same directory and are moved into place with
``os.replace``.
"""

import os
import shutil
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Union

from lotto_cache.core.exceptions import DataPersistenceError


class AtomicWriter:
    """
    Atomic file writer with optional rotating backups.

    Attributes:
        backup_retention_count (int): Number of backup files to keep
        logger (logging.Logger): Logger instance
    """

    def __init__(
        self,
        backup_retention_count: int = 3,
        logger: Optional[logging.Logger] = None
    ):
        self.backup_retention_count = backup_retention_count
        self.logger = logger or logging.getLogger(__name__)

    def write_atomic(
        self,
        file_path: Union[str, Path],
        content: str,
        create_backup: bool = False,
        encoding: str = 'utf-8'
    ) -> Path:
        """
        Write content to a file atomically.

        Args:
            file_path: Path to the target file
            content: Content to write
            create_backup: Whether to keep a timestamped copy of the old file
            encoding: File encoding

        Returns:
            Path to the backup file if created, otherwise the target file path

        Raises:
            DataPersistenceError: If the write operation fails
        """
        file_path = Path(file_path)
        temp_file = file_path.with_suffix(f'{file_path.suffix}.tmp')

        backup_file = None
        if create_backup and file_path.exists():
            timestamp = datetime.now().strftime("%Y%m%d%H%M%S%f")
            backup_file = file_path.with_suffix(f'{file_path.suffix}.bak{timestamp}')

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)

            with open(temp_file, 'w', encoding=encoding) as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())

            if backup_file is not None:
                shutil.copy2(file_path, backup_file)

            os.replace(temp_file, file_path)

            self.logger.debug(
                f"File written atomically: {file_path}",
                extra={"file_path": str(file_path), "backup_file": str(backup_file) if backup_file else None}
            )

            if backup_file is not None:
                self.cleanup_old_backups(file_path)

            return backup_file if backup_file else file_path

        except OSError as e:
            if temp_file.exists():
                try:
                    temp_file.unlink()
                except OSError:
                    pass

            raise DataPersistenceError(
                f"Failed to write file atomically: {str(e)}",
                file_path=str(file_path),
                operation="write",
                original_error=e
            ) from e

    def cleanup_old_backups(self, file_path: Path) -> None:
        """Delete backups beyond ``backup_retention_count``, newest kept."""
        for old_backup in self.get_backup_files(file_path)[self.backup_retention_count:]:
            try:
                old_backup.unlink()
                self.logger.debug(f"Removed old backup: {old_backup}")
            except OSError as e:
                self.logger.warning(f"Failed to remove old backup: {old_backup} ({e})")

    def get_backup_files(self, file_path: Union[str, Path]) -> List[Path]:
        """
        Get the backup files for a given file.

        Returns:
            List of backup file paths sorted by modification time (newest first)
        """
        file_path = Path(file_path)
        backup_pattern = f"{file_path.stem}{file_path.suffix}.bak*"
        return sorted(
            file_path.parent.glob(backup_pattern),
            key=lambda p: p.stat().st_mtime,
            reverse=True
        )

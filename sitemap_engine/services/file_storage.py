"""
File storage for generated sitemap documents.

Writes the sitemap index and per-module files to ``STORAGE_DIR`` through a
temporary file and an atomic replace. Existing files are backed up before
they are overwritten.
"""
import logging
import os
import re
import shutil
import tempfile
from datetime import datetime
from typing import Iterable, List, Optional

from django.conf import settings

from ..conf import engine_settings

logger = logging.getLogger(__name__)

INDEX_FILENAME = 'sitemap'
MAX_BACKUPS = 5
FILENAME_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.-]*$')


def valid_filename(filename: str) -> bool:
    """True for a bare file name without extension or path separators."""
    return bool(filename) and bool(FILENAME_RE.match(filename)) and '..' not in filename


class SitemapFileStorage:
    """
    Stores sitemap XML files on disk.
    """

    def __init__(self, storage_dir: Optional[str] = None, backup_dir: Optional[str] = None):
        """
        Initialize the storage.

        Args:
            storage_dir: Directory for sitemap files (defaults to SITEMAP_ENGINE['STORAGE_DIR'])
            backup_dir: Directory for backups (defaults to SITEMAP_ENGINE['BACKUP_DIR'])
        """
        self.storage_dir = self._absolute(storage_dir or engine_settings.STORAGE_DIR)
        self.backup_dir = self._absolute(backup_dir or engine_settings.BACKUP_DIR)

    @staticmethod
    def _absolute(path: str) -> str:
        if os.path.isabs(path):
            return path
        return os.path.join(str(getattr(settings, 'BASE_DIR', os.getcwd())), path)

    def path_for(self, filename: str) -> str:
        if not valid_filename(filename):
            raise ValueError(f"Invalid sitemap filename: {filename!r}")
        return os.path.join(self.storage_dir, f'{filename}.xml')

    def write(self, filename: str, content: str) -> bool:
        """
        Write a sitemap file atomically.

        The content goes to a temporary file in the storage directory that then
        replaces the target, so readers see either the old or the new document.
        The previous version is copied to the backup directory first. If the
        target is missing after a failed write, the newest backup is put back.

        Returns:
            True if successful, False otherwise
        """
        file_path = self.path_for(filename)
        temp_path = None
        try:
            os.makedirs(self.storage_dir, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix=f'.{filename}.', suffix='.tmp', dir=self.storage_dir)
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(content)

            if os.path.exists(file_path):
                self._backup(file_path)
            os.replace(temp_path, file_path)
            temp_path = None
            logger.debug(f"Wrote sitemap file {file_path}")
            return True
        except OSError as e:
            logger.error(f"Error writing sitemap to {file_path}: {e}")
            if not os.path.exists(file_path):
                self._restore_latest(file_path)
            return False
        finally:
            if temp_path is not None and os.path.exists(temp_path):
                os.remove(temp_path)

    def read(self, filename: str) -> Optional[str]:
        try:
            file_path = self.path_for(filename)
        except ValueError:
            return None
        if not os.path.exists(file_path):
            return None
        try:
            with open(file_path, encoding='utf-8') as f:
                return f.read()
        except OSError as e:
            logger.warning(f"Could not read sitemap file {file_path}: {e}")
            return None

    def exists(self, filename: str) -> bool:
        try:
            return os.path.exists(self.path_for(filename))
        except ValueError:
            return False

    def delete(self, filename: str) -> bool:
        try:
            file_path = self.path_for(filename)
            if os.path.exists(file_path):
                os.remove(file_path)
                logger.info(f"Deleted sitemap file {file_path}")
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Error deleting sitemap file {filename}: {e}")
            return False

    def list_modules(self) -> List[str]:
        """Names (without extension) of the module files currently stored."""
        if not os.path.isdir(self.storage_dir):
            return []
        return sorted(
            name[:-4] for name in os.listdir(self.storage_dir)
            if name.endswith('.xml') and name[:-4] != INDEX_FILENAME
        )

    def remove_stale(self, keep: Iterable[str]) -> List[str]:
        """
        Delete module files that are not in ``keep``.

        Returns:
            The names of the deleted files
        """
        keep = set(keep)
        removed = []
        for filename in self.list_modules():
            if filename not in keep and self.delete(filename):
                removed.append(filename)
        if removed:
            logger.info(f"Removed {len(removed)} stale sitemap files: {', '.join(removed)}")
        return removed

    def _backup(self, file_path: str) -> Optional[str]:
        """Copy ``file_path`` to a timestamped backup; returns its path or None."""
        name = os.path.basename(file_path)
        backup_path = os.path.join(self.backup_dir, f"{name}.{datetime.now():%Y%m%d_%H%M%S_%f}.bak")
        try:
            os.makedirs(self.backup_dir, exist_ok=True)
            shutil.copy2(file_path, backup_path)
        except OSError as e:
            logger.warning(f"Could not back up {file_path}: {e}")
            return None
        self._prune_backups(name)
        return backup_path

    def _restore_latest(self, file_path: str) -> bool:
        backups = self._backups_of(os.path.basename(file_path))
        if not backups:
            logger.warning(f"No backup found for {file_path}")
            return False
        latest = os.path.join(self.backup_dir, backups[0])
        try:
            shutil.copy2(latest, file_path)
        except OSError as e:
            logger.error(f"Error restoring {file_path} from {latest}: {e}")
            return False
        logger.info(f"Restored {file_path} from backup {latest}")
        return True

    def _backups_of(self, filename: str) -> List[str]:
        if not os.path.isdir(self.backup_dir):
            return []
        return sorted(
            (f for f in os.listdir(self.backup_dir) if f.startswith(f"{filename}.") and f.endswith('.bak')),
            reverse=True,
        )

    def _prune_backups(self, filename: str) -> None:
        """Keep only the newest MAX_BACKUPS backups of a file."""
        for old in self._backups_of(filename)[MAX_BACKUPS:]:
            os.remove(os.path.join(self.backup_dir, old))

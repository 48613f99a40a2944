"""
Retention policy enforcement for durable backups.

Deletes the dated copies of one artifact that are older than the job's
retention window. Age is counted in whole days, so with a window of N days
a copy is removed once it is at least N+1 days old.
"""

import time
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from serverbackup.config import BackupSettings
from serverbackup.models import ArtifactKind
from .naming import durable_directory, durable_glob_pattern
from .storage import LocalStorage, StorageError


logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


def parse_retention_days(value: Union[str, int, None]) -> Optional[int]:
    """
    Interpret a configured retention window.

    Returns:
        Number of days, or None when the value is empty, not a number or
        not positive (pruning is skipped in that case)
    """
    if value is None:
        return None

    try:
        days = int(str(value).strip())
    except ValueError:
        return None

    return days if days > 0 else None


class RetentionManager:
    """
    Removes expired copies from the durable store.

    The glob honours the current encryption setting, so copies written
    while encryption was toggled the other way are never matched.
    """

    def __init__(self, settings: BackupSettings):
        """
        Initialize retention manager.

        Args:
            settings: Run settings
        """
        self.settings = settings
        self.storage = LocalStorage(settings.durable_root)
        self.logs = []

    def prune(
        self,
        kind: ArtifactKind,
        logical_name: str,
        max_age_days: Union[str, int, None],
        dbms: Optional[str] = None
    ) -> List[Path]:
        """
        Delete expired durable copies of one artifact.

        Args:
            kind: Artifact kind
            logical_name: Folder base name, database name or 'packageList'
            max_age_days: Retention window in days
            dbms: DBMS kind (database artifacts only)

        Returns:
            Paths of the deleted files
        """
        days = parse_retention_days(max_age_days)
        if days is None:
            self._log(f"Retention not configured for {logical_name}, skipping")
            return []

        directory = durable_directory(self.settings, kind, logical_name)
        pattern = durable_glob_pattern(kind, logical_name, self.settings.encrypt_enabled, dbms)

        self._log(f"Searching in folder: {directory} with this pattern {pattern}. "
                  f"Will delete all files older than {days} days.")

        try:
            files = self.storage.list_matching(directory, pattern)
        except StorageError as e:
            self._log(f"Failed to list backups: {e}")
            return []

        now = time.time()
        to_delete = [
            f for f in files
            if int((now - f['modified']) // SECONDS_PER_DAY) > days
        ]

        deleted = []
        for file_info in to_delete:
            try:
                self.storage.delete(file_info['path'])
                deleted.append(file_info['path'])
                modified = datetime.fromtimestamp(file_info['modified']).strftime('%Y-%m-%d')
                self._log(f"Removed {file_info['path']} (modified {modified})")
            except StorageError as e:
                self._log(f"Failed to delete {file_info['path']}: {e}")

        return deleted

    def _log(self, message: str):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
        """
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        self.logs.append(f"[{timestamp}] {message}")
        logger.info(message)

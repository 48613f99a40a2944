"""
Backup module for serverbackup.

This module handles the per job backup functionality including:
- Job table loading
- Artifact naming
- External tool invocation (tar, gpg, database dumps, dpkg)
- Storage in the durable backup directory
- Retention policy enforcement
"""

from .executor import (
    BackupExecutor,
    FolderBackupExecutor,
    DatabaseBackupExecutor,
    PackageListExecutor,
    create_executor
)
from .catalog import load_folder_jobs, load_database_jobs
from .storage import LocalStorage, StorageError
from .retention import RetentionManager

__all__ = [
    'BackupExecutor',
    'FolderBackupExecutor',
    'DatabaseBackupExecutor',
    'PackageListExecutor',
    'create_executor',
    'load_folder_jobs',
    'load_database_jobs',
    'LocalStorage',
    'StorageError',
    'RetentionManager'
]

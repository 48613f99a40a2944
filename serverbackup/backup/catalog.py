"""
Loader for the job tables.

Both tables are line oriented with ';' separated fields:

    backupDirectories:  path;excludes;retention_days;io_class,io_level;nice
    backupDatabases:    name;dbms;user,password,port,host;retention_days

Empty lines and lines starting with '#' are ignored. Missing trailing
fields are treated as empty; no other validation happens here.
"""

import logging
from pathlib import Path
from typing import Iterable, List

from serverbackup.config import Config
from serverbackup.models import BackupJob, DatabaseJob, ConnectionParams


logger = logging.getLogger(__name__)


def _rows(lines: Iterable[str], field_count: int) -> Iterable[List[str]]:
    for line in lines:
        line = line.rstrip('\r\n')
        stripped = line.strip()
        if not stripped or stripped.startswith('#'):
            continue

        fields = line.split(Config.FIELD_SEPARATOR)
        fields = [field.strip() for field in fields[:field_count]]
        fields += [''] * (field_count - len(fields))
        yield fields


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


def parse_folder_jobs(lines: Iterable[str]) -> List[BackupJob]:
    """Parse folder table rows into BackupJob records, preserving order."""
    jobs = []
    for path, excludes, days, io_priority, cpu_priority in _rows(lines, 5):
        jobs.append(BackupJob(
            source_path=path,
            excludes=_split_list(excludes),
            retention_days=days,
            io_priority=io_priority,
            cpu_priority=cpu_priority
        ))
    return jobs


def parse_database_jobs(lines: Iterable[str]) -> List[DatabaseJob]:
    """Parse database table rows into DatabaseJob records, preserving order."""
    jobs = []
    for name, dbms, connection, days in _rows(lines, 4):
        jobs.append(DatabaseJob(
            name=name,
            dbms=dbms,
            connection=ConnectionParams.parse(connection),
            retention_days=days
        ))
    return jobs


def _read_lines(path: Path) -> List[str]:
    path = Path(path)
    if not path.is_file():
        logger.warning(f"Job table not found, no jobs loaded: {path}")
        return []

    # Paths that are not valid UTF-8 are kept byte for byte
    try:
        with open(path, 'r', encoding='utf-8', errors='surrogateescape') as f:
            return f.readlines()
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Cannot read job table {path}, no jobs loaded: {e}")
        return []


def load_folder_jobs(path: Path) -> List[BackupJob]:
    """
    Load the folder table.

    Args:
        path: Path of the backupDirectories file

    Returns:
        Jobs in file order (empty if the file is missing or unreadable)
    """
    return parse_folder_jobs(_read_lines(path))


def load_database_jobs(path: Path) -> List[DatabaseJob]:
    """
    Load the database table.

    Args:
        path: Path of the backupDatabases file

    Returns:
        Jobs in file order (empty if the file is missing or unreadable)
    """
    return parse_database_jobs(_read_lines(path))

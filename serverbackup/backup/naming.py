"""
Artifact naming policy.

Durable copies carry the run date in their name:
- folder:       {name}_backup_{YYYY-MM-DD}.tar.gz[.gpg]
- database:     {dbms}_db_{name}_{YYYY-MM-DD}.sql.gz[.gpg]
- package list: packageList_{YYYY-MM-DD}.list[.gpg]

Local copies never do, so every run overwrites the previous one.
"""

import os
from datetime import date
from pathlib import Path
from typing import Optional

from serverbackup.config import BackupSettings
from serverbackup.models import ArtifactKind


ENCRYPTION_SUFFIX = '.gpg'
DATABASE_SUBDIR = 'db'
PACKAGE_LIST_NAME = 'packageList'
DATE_FORMAT = '%Y-%m-%d'
DATE_GLOB = '[0-9][0-9][0-9][0-9]-[0-9][0-9]-[0-9][0-9]'

EXTENSIONS = {
    ArtifactKind.FOLDER: 'tar.gz',
    ArtifactKind.DATABASE: 'sql.gz',
    ArtifactKind.PACKAGE_LIST: 'list',
}


def folder_logical_name(source_path: str) -> str:
    """
    Derive the logical name of a folder job.

    Only the final path segment is used, so /srv/a/app and /srv/b/app share
    the same durable directory.
    """
    return os.path.basename(source_path.rstrip('/'))


def _stem(kind: ArtifactKind, logical_name: str, dbms: Optional[str]) -> str:
    if kind == ArtifactKind.FOLDER:
        return f"{logical_name}_backup"
    elif kind == ArtifactKind.DATABASE:
        return f"{dbms or '*'}_db_{logical_name}"
    elif kind == ArtifactKind.PACKAGE_LIST:
        return PACKAGE_LIST_NAME
    raise ValueError(f"Invalid artifact kind: {kind}")


def _subdirectory(kind: ArtifactKind, logical_name: str) -> str:
    if kind == ArtifactKind.FOLDER:
        return logical_name
    elif kind == ArtifactKind.DATABASE:
        return DATABASE_SUBDIR
    elif kind == ArtifactKind.PACKAGE_LIST:
        return PACKAGE_LIST_NAME
    raise ValueError(f"Invalid artifact kind: {kind}")


def local_directory(settings: BackupSettings, kind: ArtifactKind, logical_name: str) -> Path:
    """Staging directory for an artifact kind inside the local root."""
    return settings.local_root / _subdirectory(kind, logical_name)


def durable_directory(settings: BackupSettings, kind: ArtifactKind, logical_name: str) -> Path:
    """Directory inside the durable root holding every copy of one artifact."""
    return settings.durable_root / _subdirectory(kind, logical_name)


def local_artifact_path(
    settings: BackupSettings,
    kind: ArtifactKind,
    logical_name: str,
    dbms: Optional[str] = None
) -> Path:
    """
    Path of the raw artifact in the local root.

    Args:
        settings: Run settings
        kind: Artifact kind
        logical_name: Folder base name, database name or 'packageList'
        dbms: DBMS kind (database artifacts only)

    Returns:
        Date independent path of the unencrypted artifact
    """
    filename = f"{_stem(kind, logical_name, dbms)}.{EXTENSIONS[kind]}"
    return local_directory(settings, kind, logical_name) / filename


def encrypted_path(path: Path) -> Path:
    """Path gpg writes the encrypted copy of *path* to."""
    return path.with_name(path.name + ENCRYPTION_SUFFIX)


def durable_artifact_name(
    kind: ArtifactKind,
    logical_name: str,
    created: date,
    encrypted: bool,
    dbms: Optional[str] = None
) -> str:
    """
    Generate the canonical filename of a durable copy.

    Args:
        kind: Artifact kind
        logical_name: Folder base name, database name or 'packageList'
        created: Run date stamped into the name
        encrypted: Whether the encryption suffix is appended
        dbms: DBMS kind (database artifacts only)

    Returns:
        Filename (without path)
    """
    stamp = created.strftime(DATE_FORMAT)
    suffix = ENCRYPTION_SUFFIX if encrypted else ''
    return f"{_stem(kind, logical_name, dbms)}_{stamp}.{EXTENSIONS[kind]}{suffix}"


def durable_glob_pattern(
    kind: ArtifactKind,
    logical_name: str,
    encrypted: bool,
    dbms: Optional[str] = None
) -> str:
    """
    Glob matching every dated durable copy of one artifact.

    Only the date segment is a wildcard, so 'orders' never matches the
    copies of 'orders_archive' in the shared database directory.
    """
    suffix = ENCRYPTION_SUFFIX if encrypted else ''
    return f"{_stem(kind, logical_name, dbms)}_{DATE_GLOB}.{EXTENSIONS[kind]}{suffix}"

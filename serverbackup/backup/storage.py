"""
File system operations on the local staging root and the durable store.

Every failure is raised as StorageError so the pipeline can turn it into
a step status.
"""

import os
import shutil
from pathlib import Path
from typing import List, Dict, Any, Iterable


class StorageError(Exception):
    """Raised when storage operation fails."""
    pass


class LocalStorage:
    """
    Handler for one directory tree (durable root or local staging root).

    Paths handed to the methods are absolute.
    """

    def __init__(self, base_path: str):
        """
        Initialize storage handler.

        Args:
            base_path: Root directory of the store (must already exist)
        """
        self.base_path = Path(base_path)

    def ensure_directory(self, directory: Path) -> bool:
        """
        Create a directory and its parents if missing.

        Returns:
            True if the directory was created, False if it already existed

        Raises:
            StorageError: If creation fails
        """
        directory = Path(directory)
        if directory.is_dir():
            return False

        try:
            directory.mkdir(parents=True, exist_ok=True)
            return True
        except PermissionError as e:
            raise StorageError(f"Permission denied creating {directory}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to create directory {directory}: {e}")

    def store(self, source_path: Path, dest_dir: Path, filename: str) -> Path:
        """
        Copy a file into the store, replacing any existing file of that name.

        Args:
            source_path: File to copy
            dest_dir: Destination directory
            filename: Destination filename

        Returns:
            Full path of the stored copy

        Raises:
            StorageError: If the source is missing or the copy fails
        """
        if not os.path.exists(source_path):
            raise StorageError(f"Source file not found: {source_path}")

        dest_path = Path(dest_dir) / filename

        try:
            shutil.copy2(source_path, dest_path)
            return dest_path
        except PermissionError as e:
            raise StorageError(f"Permission denied writing to {dest_path}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to copy {source_path} to {dest_path}: {e}")

    def delete(self, path: Path) -> bool:
        """
        Delete a single file. Missing files are not an error.

        Returns:
            True if a file was removed

        Raises:
            StorageError: If deletion fails
        """
        path = Path(path)

        try:
            if path.exists() or path.is_symlink():
                path.unlink()
                return True
            return False
        except PermissionError as e:
            raise StorageError(f"Permission denied deleting {path}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}")

    def delete_all(self, paths: Iterable[Path]) -> List[Path]:
        """
        Delete every given file, attempting all of them even after a failure.

        Returns:
            Paths that were actually removed

        Raises:
            StorageError: If at least one deletion failed
        """
        removed = []
        errors = []

        for path in paths:
            try:
                if self.delete(path):
                    removed.append(Path(path))
            except StorageError as e:
                errors.append(str(e))

        if errors:
            raise StorageError('; '.join(errors))

        return removed

    def list_matching(self, directory: Path, pattern: str) -> List[Dict[str, Any]]:
        """
        List regular files directly inside *directory* matching a glob.

        Args:
            directory: Directory to search (not recursive)
            pattern: Shell style glob applied to the filename

        Returns:
            List of dicts with 'path', 'modified' (epoch seconds) and 'size' keys

        Raises:
            StorageError: If listing fails
        """
        directory = Path(directory)

        if not directory.is_dir():
            return []

        try:
            files = []

            for file_path in sorted(directory.glob(pattern)):
                if file_path.is_file():
                    stat = file_path.stat()
                    files.append({
                        'path': file_path,
                        'modified': stat.st_mtime,
                        'size': stat.st_size
                    })

            return files

        except OSError as e:
            raise StorageError(f"Failed to list {directory}: {e}")

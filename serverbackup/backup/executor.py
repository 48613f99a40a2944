"""
Backup executor - runs the pipeline for a single job.

Workflow:
1. Create the durable and local subdirectories (if missing)
2. Produce the raw artifact in the local root (tar, database dump, dpkg)
3. Encrypt it with gpg (if enabled)
4. Copy the result to the durable store under its dated name
5. Delete the local files
6. Report the combined status

Every step records an exit status; a failing step never stops the
following ones.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from serverbackup.config import BackupSettings
from serverbackup.models import (
    Artifact, ArtifactKind, BackupJob, DatabaseJob, PackageListJob, JobResult
)
from .commands import (
    CommandError, default_priority_prefix, dump_command, dump_compressed,
    gpg_command, package_list_command, priority_prefix, run_command,
    run_to_file, tar_command
)
from .naming import durable_directory, encrypted_path, local_artifact_path, local_directory
from .storage import LocalStorage, StorageError


logger = logging.getLogger(__name__)


class BackupExecutor:
    """
    Base pipeline shared by all job kinds.

    Subclasses provide the artifact kind and _produce().
    """

    kind: Optional[ArtifactKind] = None

    def __init__(self, settings: BackupSettings):
        """
        Initialize backup executor.

        Args:
            settings: Run settings
        """
        self.settings = settings
        self.durable_storage = LocalStorage(settings.durable_root)
        self.local_storage = LocalStorage(settings.local_root)
        self.logs = []

    @property
    def logical_name(self) -> str:
        raise NotImplementedError

    @property
    def dbms(self) -> Optional[str]:
        return None

    @property
    def label(self) -> str:
        return self.logical_name

    def priority(self) -> List[str]:
        """Scheduling hints used for encryption."""
        return default_priority_prefix()

    @property
    def artifact(self) -> Artifact:
        return Artifact(
            kind=self.kind,
            logical_name=self.logical_name,
            created=self.settings.run_date,
            encrypted=self.settings.encrypt_enabled,
            dbms=self.dbms
        )

    @property
    def local_path(self) -> Path:
        return local_artifact_path(self.settings, self.kind, self.logical_name, self.dbms)

    def execute(self) -> JobResult:
        """
        Execute the pipeline.

        Returns:
            JobResult with the status of every step
        """
        result = JobResult(job_label=self.label, kind=self.kind)
        local_path = self.local_path
        durable_dir = durable_directory(self.settings, self.kind, self.logical_name)

        # Step 1: Directories
        self._prepare_directories(durable_dir, local_directory(self.settings, self.kind, self.logical_name))

        try:
            # Step 2: Raw artifact
            try:
                result.archive_code = self._produce(local_path)
            except CommandError as e:
                self._log(f"Cannot create backup of {self.label}: {e}")
                result.archive_code = 1

            # Step 3: Encryption
            output_path = local_path
            if self.settings.encrypt_enabled:
                output_path = encrypted_path(local_path)
                result.encrypt_code = self._encrypt(local_path)

            # Step 4: Relocation
            artifact = self.artifact
            try:
                stored = self.durable_storage.store(output_path, durable_dir, artifact.durable_name)
                result.durable_path = str(stored)
                self._log(f"Copied {output_path} -> {stored}")
            except StorageError as e:
                self._log(f"Failed to copy backup to {durable_dir}: {e}")
                result.relocate_code = 1
        finally:
            # Step 5: Local cleanup, also after an unexpected error
            try:
                for removed in self.local_storage.delete_all([local_path, encrypted_path(local_path)]):
                    self._log(f"Removed {removed}")
            except StorageError as e:
                self._log(f"Failed to remove local files: {e}")
                result.cleanup_code = 1

            # Step 6: Report
            self._log(f"Backup status: {result.status}")
            if result.encrypt_code:
                self._log(f"Encryption exited with status {result.encrypt_code}")

            result.logs = list(self.logs)

        return result

    def _prepare_directories(self, durable_dir: Path, local_dir: Path):
        for storage, directory in ((self.durable_storage, durable_dir), (self.local_storage, local_dir)):
            try:
                if storage.ensure_directory(directory):
                    self._log(f"Created directory {directory}")
            except StorageError as e:
                # Following steps fail on their own and record it
                self._log(str(e))

    def _produce(self, local_path: Path) -> int:
        raise NotImplementedError

    def _encrypt(self, local_path: Path) -> int:
        self._log(f"Encrypting {local_path.name} for {self.settings.gpg_recipient}")
        code = run_command(self.priority() + gpg_command(local_path, self.settings.gpg_recipient))
        if code != 0:
            self._log(f"Encryption of {local_path.name} failed")
        return code

    def _log(self, message: str):
        """
        Add a log message with timestamp.

        Args:
            message: Log message
        """
        timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        self.logs.append(f"[{timestamp}] {message}")
        logger.info(message)


class FolderBackupExecutor(BackupExecutor):
    """Archives a directory with tar."""

    kind = ArtifactKind.FOLDER

    def __init__(self, settings: BackupSettings, job: BackupJob):
        super().__init__(settings)
        self.job = job

    @property
    def logical_name(self) -> str:
        return self.job.logical_name

    @property
    def label(self) -> str:
        return self.job.source_path

    def priority(self) -> List[str]:
        return priority_prefix(self.job.io_class, self.job.io_level, self.job.nice_level)

    def _produce(self, local_path: Path) -> int:
        self._log(f"Creating backup of {self.job.source_path}")
        if self.job.excludes:
            self._log("Tar excludes: " + ' '.join(f'--exclude={e}' for e in self.job.excludes))

        return run_command(
            self.priority() + tar_command(self.job.source_path, local_path, self.job.excludes)
        )


class DatabaseBackupExecutor(BackupExecutor):
    """Dumps a database and gzips the dump."""

    kind = ArtifactKind.DATABASE

    def __init__(self, settings: BackupSettings, job: DatabaseJob):
        super().__init__(settings)
        self.job = job

    @property
    def logical_name(self) -> str:
        return self.job.name

    @property
    def dbms(self) -> Optional[str]:
        return self.job.dbms

    def _produce(self, local_path: Path) -> int:
        args, env = dump_command(self.job)
        conn = self.job.connection
        self._log(
            f"Dumping {self.job.dbms} Database {self.job.name}. "
            f"Connection Parameters: {conn.username} {conn.port} {conn.host}"
        )
        return dump_compressed(args, local_path, env=env)


class PackageListExecutor(BackupExecutor):
    """Saves the list of installed packages."""

    kind = ArtifactKind.PACKAGE_LIST

    def __init__(self, settings: BackupSettings, job: Optional[PackageListJob] = None):
        super().__init__(settings)
        self.job = job or PackageListJob()

    @property
    def logical_name(self) -> str:
        return self.job.logical_name

    def _produce(self, local_path: Path) -> int:
        self._log("Creating backup of all installed packages with dpkg command")
        return run_to_file(package_list_command(), local_path)


def create_executor(
    settings: BackupSettings,
    job: Union[BackupJob, DatabaseJob, PackageListJob]
) -> BackupExecutor:
    """
    Factory function to create the executor for a job.

    Raises:
        ValueError: If the job type is unknown
    """
    if isinstance(job, BackupJob):
        return FolderBackupExecutor(settings, job)
    elif isinstance(job, DatabaseJob):
        return DatabaseBackupExecutor(settings, job)
    elif isinstance(job, PackageListJob):
        return PackageListExecutor(settings, job)
    else:
        raise ValueError(f"Invalid job type: {type(job).__name__}")

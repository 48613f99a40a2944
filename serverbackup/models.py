"""Job descriptors and run results."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from serverbackup.config import Config


class ArtifactKind(str, Enum):
    """Kinds of artifacts a run produces."""
    FOLDER = "folder"
    DATABASE = "database"
    PACKAGE_LIST = "package_list"


class DbmsKind(str, Enum):
    """Database systems with a supported dump utility."""
    MYSQL = "mysql"
    POSTGRES = "postgres"


class BackupJob(BaseModel):
    """One row of the folder table."""
    source_path: str
    excludes: List[str] = Field(default_factory=list)
    retention_days: str = ""
    io_priority: str = ""
    cpu_priority: str = ""

    @property
    def logical_name(self) -> str:
        from serverbackup.backup.naming import folder_logical_name
        return folder_logical_name(self.source_path)

    @property
    def io_class(self) -> str:
        parts = self.io_priority.split(',') if self.io_priority else []
        return parts[0] if parts and parts[0] else Config.DEFAULT_IO_CLASS

    @property
    def io_level(self) -> str:
        parts = self.io_priority.split(',') if self.io_priority else []
        return parts[1] if len(parts) > 1 and parts[1] else Config.DEFAULT_IO_LEVEL

    @property
    def nice_level(self) -> str:
        return self.cpu_priority or Config.DEFAULT_NICE_LEVEL


class ConnectionParams(BaseModel):
    """Database connection parameters: username,password,port,host."""
    username: str = ""
    password: str = ""
    port: str = ""
    host: str = ""

    @classmethod
    def parse(cls, value: str) -> "ConnectionParams":
        # Passwords containing commas are not supported
        parts = value.split(',', 3) if value else []
        parts += [""] * (4 - len(parts))
        return cls(username=parts[0], password=parts[1], port=parts[2], host=parts[3])


class DatabaseJob(BaseModel):
    """One row of the database table."""
    name: str
    dbms: str = ""
    connection: ConnectionParams = Field(default_factory=ConnectionParams)
    retention_days: str = ""

    @property
    def logical_name(self) -> str:
        return self.name


class PackageListJob(BaseModel):
    """Snapshot of the installed packages. Retention is not configurable."""
    retention_days: str = str(Config.PACKAGE_LIST_RETENTION_DAYS)

    @property
    def logical_name(self) -> str:
        return "packageList"


class Artifact(BaseModel):
    """A produced backup file."""
    kind: ArtifactKind
    logical_name: str
    created: date
    encrypted: bool = False
    dbms: Optional[str] = None

    @property
    def durable_name(self) -> str:
        from serverbackup.backup.naming import durable_artifact_name
        return durable_artifact_name(
            self.kind, self.logical_name, self.created, self.encrypted, self.dbms
        )


class JobResult(BaseModel):
    """Outcome of a single pipeline execution."""
    job_label: str
    kind: ArtifactKind
    archive_code: int = 0
    encrypt_code: Optional[int] = None
    relocate_code: int = 0
    cleanup_code: int = 0
    durable_path: Optional[str] = None
    pruned: List[str] = Field(default_factory=list)
    logs: List[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        # Encryption failures do not affect the combined status
        return self.archive_code == 0 and self.relocate_code == 0 and self.cleanup_code == 0

    @property
    def status(self) -> str:
        if self.succeeded:
            return "OK"
        return (
            f"FAILED (1 = {self.archive_code}; 2 = {self.relocate_code}; "
            f"3 = {self.cleanup_code})"
        )


class RunResult(BaseModel):
    """Aggregate of all jobs attempted in one run. Only reported, never persisted."""
    started_at: datetime = Field(default_factory=lambda: datetime.now())
    elapsed_seconds: int = 0
    jobs: List[JobResult] = Field(default_factory=list)

    @property
    def failed_jobs(self) -> List[JobResult]:
        return [job for job in self.jobs if not job.succeeded]

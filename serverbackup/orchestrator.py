"""
Run orchestration.

A run walks through the folder table, the database table and, when
enabled, the package list job. Each job goes through the backup pipeline
and then retention pruning. Jobs are independent: a failing job is logged
and the run continues with the next one.
"""

import time
import logging
from typing import List, Optional, Union

from serverbackup.config import BackupSettings
from serverbackup.models import (
    ArtifactKind, BackupJob, DatabaseJob, JobResult, PackageListJob, RunResult
)
from serverbackup.backup.catalog import load_database_jobs, load_folder_jobs
from serverbackup.backup.executor import create_executor
from serverbackup.backup.retention import RetentionManager, parse_retention_days


logger = logging.getLogger(__name__)

Job = Union[BackupJob, DatabaseJob, PackageListJob]


class BackupRun:
    """
    Executes every configured job once, sequentially.

    The returned RunResult is informational only. It does not influence
    the process exit status.
    """

    def __init__(
        self,
        settings: BackupSettings,
        folder_jobs: Optional[List[BackupJob]] = None,
        database_jobs: Optional[List[DatabaseJob]] = None
    ):
        """
        Initialize a run.

        Args:
            settings: Validated run settings
            folder_jobs: Folder jobs (default: loaded from settings.folder_table)
            database_jobs: Database jobs (default: loaded from settings.database_table)
        """
        self.settings = settings
        self.folder_jobs = folder_jobs
        self.database_jobs = database_jobs
        self.retention = RetentionManager(settings)

    def run(self) -> RunResult:
        """
        Run all jobs and report the elapsed time.

        Returns:
            RunResult with one JobResult per attempted job
        """
        result = RunResult()
        start = time.monotonic()

        logger.info("Starting server backup")

        folder_jobs = self.folder_jobs
        if folder_jobs is None:
            folder_jobs = load_folder_jobs(self.settings.folder_table)
        for job in folder_jobs:
            logger.info(
                f"Backup Folder: {job.source_path} | Excludes: {','.join(job.excludes)} | "
                f"Days max: {job.retention_days} | ionice: {job.io_priority} | nice: {job.cpu_priority}"
            )
            result.jobs.append(self.run_job(job, ArtifactKind.FOLDER))

        database_jobs = self.database_jobs
        if database_jobs is None:
            database_jobs = load_database_jobs(self.settings.database_table)
        for job in database_jobs:
            logger.info(f"Backup Database: {job.name} | DBMS: {job.dbms} | Days max: {job.retention_days}")
            result.jobs.append(self.run_job(job, ArtifactKind.DATABASE))

        if self.settings.package_list_enabled:
            result.jobs.append(self.run_job(PackageListJob(), ArtifactKind.PACKAGE_LIST))

        result.elapsed_seconds = int(time.monotonic() - start)
        failed = len(result.failed_jobs)
        if failed:
            logger.warning(f"{failed} of {len(result.jobs)} backup jobs failed")
        logger.info(f"Backup finished in {result.elapsed_seconds} seconds")

        return result

    def run_job(self, job: Job, kind: ArtifactKind) -> JobResult:
        """
        Run the pipeline and retention pruning for one job.

        Never raises: unexpected errors are logged and recorded as a failed
        job so the run can continue.
        """
        try:
            job_result = create_executor(self.settings, job).execute()
        except Exception as e:
            logger.exception(f"Backup of {job.logical_name} aborted: {e}")
            job_result = JobResult(job_label=job.logical_name, kind=kind, archive_code=1)

        if parse_retention_days(job.retention_days) is None:
            return job_result

        dbms = job.dbms if isinstance(job, DatabaseJob) else None
        try:
            job_result.pruned = [
                str(path) for path in self.retention.prune(kind, job.logical_name, job.retention_days, dbms)
            ]
        except Exception as e:
            logger.exception(f"Retention cleanup of {job.logical_name} aborted: {e}")

        return job_result


def run_backup(settings: BackupSettings) -> RunResult:
    """
    Run a complete backup with the job tables from settings.config_dir.

    The package list job is pruned with a fixed window of
    Config.PACKAGE_LIST_RETENTION_DAYS days.
    """
    return BackupRun(settings).run()

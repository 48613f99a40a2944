"""
Unit tests for run orchestration (serverbackup/orchestrator.py).
"""

import os
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

from serverbackup.models import (
    ArtifactKind, BackupJob, ConnectionParams, DatabaseJob, JobResult
)
from serverbackup.orchestrator import BackupRun, run_backup


def _result(label, kind, archive_code=0):
    return JobResult(job_label=label, kind=kind, archive_code=archive_code)


def _fake_dump(args, output_path, env=None):
    Path(output_path).write_bytes(b'dump')
    return 0


class TestBackupRun:
    """Test BackupRun sequencing."""

    @patch('serverbackup.orchestrator.create_executor')
    def test_jobs_run_in_order(self, mock_create_executor, settings):
        calls = []

        def executor_for(run_settings, job):
            executor = MagicMock()
            label = getattr(job, 'source_path', None) or getattr(job, 'name', None) or 'packageList'
            calls.append(label)
            executor.execute.return_value = _result(label, ArtifactKind.FOLDER)
            return executor

        mock_create_executor.side_effect = executor_for
        run = BackupRun(
            settings,
            folder_jobs=[BackupJob(source_path='/a'), BackupJob(source_path='/b')],
            database_jobs=[DatabaseJob(name='orders', dbms='postgres')]
        )

        result = run.run()

        assert calls == ['/a', '/b', 'orders']
        assert len(result.jobs) == 3

    @patch('serverbackup.orchestrator.create_executor')
    def test_failed_job_does_not_stop_run(self, mock_create_executor, settings):
        failing = MagicMock()
        failing.execute.return_value = _result('/a', ArtifactKind.FOLDER, archive_code=2)
        crashing = MagicMock()
        crashing.execute.side_effect = RuntimeError('boom')
        working = MagicMock()
        working.execute.return_value = _result('orders', ArtifactKind.DATABASE)
        mock_create_executor.side_effect = [failing, crashing, working]

        run = BackupRun(
            settings,
            folder_jobs=[BackupJob(source_path='/a'), BackupJob(source_path='/b')],
            database_jobs=[DatabaseJob(name='orders', dbms='postgres')]
        )
        result = run.run()

        assert len(result.jobs) == 3
        assert [job.succeeded for job in result.jobs] == [False, False, True]
        assert len(result.failed_jobs) == 2

    @patch('serverbackup.orchestrator.create_executor')
    def test_pruning_only_with_retention(self, mock_create_executor, settings):
        mock_create_executor.return_value.execute.side_effect = [
            _result('/a', ArtifactKind.FOLDER),
            _result('/b', ArtifactKind.FOLDER),
            _result('orders', ArtifactKind.DATABASE),
        ]
        run = BackupRun(
            settings,
            folder_jobs=[
                BackupJob(source_path='/data/a', retention_days='7'),
                BackupJob(source_path='/data/b', retention_days='0'),
            ],
            database_jobs=[DatabaseJob(name='orders', dbms='postgres', retention_days='14')]
        )

        with patch.object(run.retention, 'prune', return_value=[]) as mock_prune:
            run.run()

        assert mock_prune.call_count == 2
        mock_prune.assert_any_call(ArtifactKind.FOLDER, 'a', '7', None)
        mock_prune.assert_any_call(ArtifactKind.DATABASE, 'orders', '14', 'postgres')

    @patch('serverbackup.orchestrator.create_executor')
    def test_pruning_runs_after_crashed_job(self, mock_create_executor, settings):
        mock_create_executor.return_value.execute.side_effect = RuntimeError('boom')
        run = BackupRun(settings, folder_jobs=[BackupJob(source_path='/data/a', retention_days='7')],
                        database_jobs=[])

        with patch.object(run.retention, 'prune', return_value=[]) as mock_prune:
            run.run()

        mock_prune.assert_called_once()

    @patch('serverbackup.orchestrator.create_executor')
    def test_package_list_pruned_with_fixed_window(self, mock_create_executor, settings):
        settings = settings.model_copy(update={'package_list_enabled': True})
        mock_create_executor.return_value.execute.return_value = _result('packageList', ArtifactKind.PACKAGE_LIST)
        run = BackupRun(settings, folder_jobs=[], database_jobs=[])

        with patch.object(run.retention, 'prune', return_value=[]) as mock_prune:
            result = run.run()

        assert len(result.jobs) == 1
        mock_prune.assert_called_once_with(ArtifactKind.PACKAGE_LIST, 'packageList', '30', None)

    @patch('serverbackup.orchestrator.create_executor')
    def test_package_list_disabled(self, mock_create_executor, settings):
        result = BackupRun(settings, folder_jobs=[], database_jobs=[]).run()

        mock_create_executor.assert_not_called()
        assert result.jobs == []

    @patch('serverbackup.orchestrator.create_executor')
    def test_jobs_loaded_from_config_dir(self, mock_create_executor, settings):
        settings.folder_table.write_text('# comment\n/data/app;;;;\n\n')
        settings.database_table.write_text('#orders;postgres;u,p,5432,localhost;\n')
        mock_create_executor.return_value.execute.return_value = _result('/data/app', ArtifactKind.FOLDER)

        result = run_backup(settings)

        assert len(result.jobs) == 1
        job = mock_create_executor.call_args[0][1]
        assert job.source_path == '/data/app'

    @patch('serverbackup.orchestrator.create_executor')
    def test_reports_elapsed_time(self, mock_create_executor, settings, caplog):
        with caplog.at_level('INFO', logger='serverbackup'):
            result = BackupRun(settings, folder_jobs=[], database_jobs=[]).run()

        assert result.elapsed_seconds >= 0
        assert 'Backup finished in' in caplog.text


class TestEndToEnd:
    """Runs with real files; only the external processes are faked."""

    def test_folder_job(self, settings, source_dir, fake_run_command):
        app_dir = settings.durable_root / 'app'
        app_dir.mkdir()
        stale = app_dir / 'app_backup_2023-12-01.tar.gz'
        stale.write_text('old')
        stale_other = app_dir / 'app_backup_2023-12-01.tar.gz.gpg'
        stale_other.write_text('old')
        recent = app_dir / 'app_backup_2024-01-12.tar.gz'
        recent.write_text('recent')
        old = time.time() - 40 * 86400
        os.utime(stale, (old, old))
        os.utime(stale_other, (old, old))
        os.utime(recent, (time.time() - 3 * 86400, time.time() - 3 * 86400))

        job = BackupJob(source_path=str(source_dir), excludes=['cache', 'tmp'], retention_days='7')

        with patch('serverbackup.backup.executor.run_command', side_effect=fake_run_command) as mock_run:
            result = BackupRun(settings, folder_jobs=[job], database_jobs=[]).run()

        tar_args = mock_run.call_args_list[0][0][0]
        assert '--exclude=cache' in tar_args
        assert '--exclude=tmp' in tar_args

        assert sorted(p.name for p in app_dir.iterdir()) == [
            'app_backup_2023-12-01.tar.gz.gpg',
            'app_backup_2024-01-12.tar.gz',
            'app_backup_2024-01-15.tar.gz',
        ]
        assert result.jobs[0].pruned == [str(stale)]
        assert list(settings.local_root.rglob('*.tar.gz')) == []

    def test_database_job_without_retention(self, settings):
        job = DatabaseJob(
            name='orders',
            dbms='postgres',
            connection=ConnectionParams.parse('u,p,5432,localhost'),
            retention_days=''
        )
        run = BackupRun(settings, folder_jobs=[], database_jobs=[job])

        with patch('serverbackup.backup.executor.dump_compressed', side_effect=_fake_dump):
            with patch.object(run.retention, 'prune') as mock_prune:
                result = run.run()

        mock_prune.assert_not_called()
        assert result.jobs[0].status == 'OK'
        assert (settings.durable_root / 'db' / 'postgres_db_orders_2024-01-15.sql.gz').exists()

    def test_package_list_job(self, settings):
        settings = settings.model_copy(update={'package_list_enabled': True})
        pkg_dir = settings.durable_root / 'packageList'
        pkg_dir.mkdir()
        expired = pkg_dir / 'packageList_2023-11-01.list'
        expired.write_text('old')
        old = time.time() - 45 * 86400
        os.utime(expired, (old, old))

        def fake_dpkg(args, output_path):
            Path(output_path).write_text('bash\tinstall\n')
            return 0

        with patch('serverbackup.backup.executor.run_to_file', side_effect=fake_dpkg):
            result = BackupRun(settings, folder_jobs=[], database_jobs=[]).run()

        assert [p.name for p in pkg_dir.iterdir()] == ['packageList_2024-01-15.list']
        assert result.jobs[0].pruned == [str(expired)]

"""
Shared pytest fixtures for serverbackup tests.

This module provides fixtures for:
- Durable and local root directories
- Run settings (plain and encrypted)
- Source directories and job tables
- A fake process runner standing in for tar and gpg
"""

import logging
from datetime import date
from pathlib import Path

import pytest

from serverbackup.config import BackupSettings


RUN_DATE = date(2024, 1, 15)


@pytest.fixture(autouse=True)
def reset_logging():
    """Remove handlers installed by configure_logging() during a test."""
    yield
    logger = logging.getLogger('serverbackup')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def durable_root(tmp_path):
    path = tmp_path / 'durable'
    path.mkdir()
    return path


@pytest.fixture
def local_root(tmp_path):
    path = tmp_path / 'local'
    path.mkdir()
    return path


@pytest.fixture
def config_dir(tmp_path):
    path = tmp_path / 'config'
    path.mkdir()
    return path


@pytest.fixture
def settings(durable_root, local_root, config_dir):
    """Settings with encryption and package list disabled."""
    return BackupSettings(
        durable_root=durable_root,
        local_root=local_root,
        package_list_enabled=False,
        encrypt_enabled=False,
        gpg_recipient='',
        config_dir=config_dir,
        run_date=RUN_DATE
    )


@pytest.fixture
def encrypted_settings(durable_root, local_root, config_dir):
    """Settings with gpg encryption enabled."""
    return BackupSettings(
        durable_root=durable_root,
        local_root=local_root,
        package_list_enabled=False,
        encrypt_enabled=True,
        gpg_recipient='backup@example.com',
        config_dir=config_dir,
        run_date=RUN_DATE
    )


@pytest.fixture
def source_dir(tmp_path):
    """
    Create a directory to back up.

    Creates:
    - app/index.html
    - app/cache/page.html
    - app/tmp/upload.bin
    """
    app = tmp_path / 'data' / 'app'
    (app / 'cache').mkdir(parents=True)
    (app / 'tmp').mkdir()
    (app / 'index.html').write_text('<html></html>')
    (app / 'cache' / 'page.html').write_text('cached')
    (app / 'tmp' / 'upload.bin').write_bytes(b'\x00\x01')
    return app


def fake_process(args, stdout=None, env=None):
    """
    Stand-in for run_command: writes the files tar and gpg would produce.
    """
    if 'czpf' in args:
        Path(args[args.index('czpf') + 1]).write_bytes(b'archive')
    elif '--batch' in args:
        plain = Path(args[-1])
        plain.with_name(plain.name + '.gpg').write_bytes(b'encrypted')
    return 0


@pytest.fixture
def fake_run_command():
    """Return the fake process runner used with patch(..., side_effect=...)."""
    return fake_process

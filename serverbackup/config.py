import os
import sys
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field


class ConfigError(Exception):
    """Raised when the run configuration is unusable."""
    pass


class Config:
    """Base configuration"""

    # Location of the job tables. Defaults to the directory of the invoked program.
    CONFIG_DIR = os.environ.get('SERVERBACKUP_CONFIG_DIR') or os.path.dirname(
        os.path.abspath(sys.argv[0])
    )
    FOLDER_TABLE = 'backupDirectories'
    DATABASE_TABLE = 'backupDatabases'
    FIELD_SEPARATOR = ';'

    # Logging
    LOG_FILE = os.environ.get('SERVERBACKUP_LOG_FILE')
    LOG_LEVEL = os.environ.get('SERVERBACKUP_LOG_LEVEL', 'INFO')

    # External tools
    TAR_BIN = os.environ.get('TAR_BIN') or 'tar'
    GPG_BIN = os.environ.get('GPG_BIN') or 'gpg'
    MYSQLDUMP_BIN = os.environ.get('MYSQLDUMP_BIN') or 'mysqldump'
    PG_DUMP_BIN = os.environ.get('PG_DUMP_BIN') or 'pg_dump'
    DPKG_BIN = os.environ.get('DPKG_BIN') or 'dpkg'
    IONICE_BIN = os.environ.get('IONICE_BIN') or 'ionice'
    NICE_BIN = os.environ.get('NICE_BIN') or 'nice'

    # Scheduling hints used when a job does not configure its own
    DEFAULT_IO_CLASS = '2'
    DEFAULT_IO_LEVEL = '4'
    DEFAULT_NICE_LEVEL = '10'

    # Package list retention is fixed
    PACKAGE_LIST_RETENTION_DAYS = 30

    # Number of positional arguments the command line expects
    EXPECTED_ARGUMENTS = 5


class BackupSettings(BaseModel):
    """
    Process-wide settings for one backup run.

    Built once by validate_arguments() and handed to every component.
    """

    model_config = ConfigDict(frozen=True)

    durable_root: Path
    local_root: Path
    package_list_enabled: bool = False
    encrypt_enabled: bool = False
    gpg_recipient: str = ''
    config_dir: Path = Field(default_factory=lambda: Path(Config.CONFIG_DIR))
    run_date: date = Field(default_factory=lambda: date.today())

    @property
    def folder_table(self) -> Path:
        return self.config_dir / Config.FOLDER_TABLE

    @property
    def database_table(self) -> Path:
        return self.config_dir / Config.DATABASE_TABLE


def _flag(value: str) -> bool:
    # Only a literal "1" switches a feature on
    return value.strip() == '1'


def validate_arguments(
    args: Sequence[str],
    config_dir: Optional[str] = None,
    run_date: Optional[date] = None
) -> BackupSettings:
    """
    Validate command line arguments and build the run settings.

    Args:
        args: Positional arguments: durable root, local root, package list
            flag, encryption flag, gpg recipient
        config_dir: Directory holding the job tables (default: Config.CONFIG_DIR)
        run_date: Date stamped into durable artifact names (default: today)

    Returns:
        Immutable BackupSettings

    Raises:
        ConfigError: If the argument count is wrong or a root directory is
            missing
    """
    if len(args) != Config.EXPECTED_ARGUMENTS:
        raise ConfigError(
            f"Number of arguments not matching. Expected "
            f"{Config.EXPECTED_ARGUMENTS} arguments got {len(args)}"
        )

    durable_root, local_root, package_list, encrypt, recipient = args

    if not durable_root or not os.path.isdir(durable_root):
        raise ConfigError("Backup directory does not exist or is not set")
    if not local_root or not os.path.isdir(local_root):
        raise ConfigError("Backup temp directory does not exist or is not set")

    return BackupSettings(
        durable_root=Path(durable_root),
        local_root=Path(local_root),
        package_list_enabled=_flag(package_list),
        encrypt_enabled=_flag(encrypt),
        gpg_recipient=recipient,
        config_dir=Path(config_dir or Config.CONFIG_DIR),
        run_date=run_date or date.today()
    )

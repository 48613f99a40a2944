"""Command line interface for serverbackup."""

import sys
import logging

import click

from serverbackup import configure_logging
from serverbackup.config import Config, ConfigError, validate_arguments
from serverbackup.orchestrator import run_backup


logger = logging.getLogger('serverbackup.cli')


@click.command()
@click.argument('arguments', nargs=-1)
@click.option('--config-dir', type=click.Path(file_okay=False),
              default=None, help='Directory holding backupDirectories and backupDatabases.')
@click.option('--log-file', type=click.Path(dir_okay=False),
              default=None, help='Also write the log to this (rotating) file.')
@click.option('-v', '--verbose', is_flag=True, help='Log debug messages.')
def main(arguments, config_dir, log_file, verbose):
    """Back up folders, databases and the package list.

    \b
    ARGUMENTS: DURABLE_ROOT LOCAL_ROOT PACKAGE_LIST(0|1) ENCRYPT(0|1) GPG_RECIPIENT

    Example:
        serverbackup /mnt/backup /var/tmp/backup 1 1 backup@example.com
    """
    level = 'DEBUG' if verbose else Config.LOG_LEVEL

    # Console only until validation passes, a rejected run writes nothing
    configure_logging(level)

    try:
        settings = validate_arguments(arguments, config_dir=config_dir)
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    configure_logging(level, log_file or Config.LOG_FILE)

    # Individual job failures are reported in the log only
    run_backup(settings)
    sys.exit(0)


if __name__ == '__main__':
    main()

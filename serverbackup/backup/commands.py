"""
External tools invoked by the backup pipeline.

Builds the argument lists for:
- tar: gzip compressed folder archives
- gpg: recipient based encryption
- mysqldump / pg_dump: database dumps
- dpkg: installed package list

and runs them as blocking processes. No timeout is applied.
"""

import os
import gzip
import shutil
import logging
import subprocess
from pathlib import Path
from typing import List, Dict, Optional, Tuple

from serverbackup.config import Config
from serverbackup.models import DatabaseJob, DbmsKind


logger = logging.getLogger(__name__)

# Shell conventions for a command that cannot be started
EXIT_NOT_FOUND = 127
EXIT_NOT_EXECUTABLE = 126


class CommandError(Exception):
    """Raised when no command can be built for a job."""
    pass


def priority_prefix(io_class: str, io_level: str, nice_level: str) -> List[str]:
    """
    Wrap a command in ionice/nice scheduling hints.

    Args:
        io_class: ionice scheduling class
        io_level: ionice priority within the class
        nice_level: CPU niceness

    Returns:
        Argument prefix to put in front of the actual command
    """
    return [
        Config.IONICE_BIN, f'-c{io_class}', f'-n{io_level}',
        Config.NICE_BIN, f'-n{nice_level}'
    ]


def default_priority_prefix() -> List[str]:
    return priority_prefix(
        Config.DEFAULT_IO_CLASS,
        Config.DEFAULT_IO_LEVEL,
        Config.DEFAULT_NICE_LEVEL
    )


def tar_command(source_dir: str, archive_path: Path, excludes: List[str]) -> List[str]:
    """
    Build the tar invocation archiving the contents of source_dir.

    Each exclude becomes one --exclude option. The archive stores paths
    relative to source_dir.
    """
    args = [Config.TAR_BIN, 'czpf', str(archive_path)]
    args.extend(f'--exclude={exclude}' for exclude in excludes if exclude)
    args.extend(['-C', str(source_dir), '.'])
    return args


def gpg_command(path: Path, recipient: str) -> List[str]:
    """
    Build the gpg invocation encrypting *path* to *path*.gpg.

    Runs in batch mode, overwrites existing output and trusts the recipient
    key without a signature. Keys with a passphrase are not supported.
    """
    return [
        Config.GPG_BIN, '--batch', '--yes', '--trust-model', 'always',
        '-e', '-r', recipient, str(path)
    ]


def dump_command(job: DatabaseJob) -> Tuple[List[str], Optional[Dict[str, str]]]:
    """
    Build the dump invocation for a database job.

    Args:
        job: Database job

    Returns:
        Tuple of (argument list, environment or None to inherit)

    Raises:
        CommandError: If the DBMS kind is not supported
    """
    conn = job.connection

    if job.dbms == DbmsKind.MYSQL.value:
        args = [Config.MYSQLDUMP_BIN, '-u', conn.username]
        if conn.password:
            args.append(f'-p{conn.password}')
        if conn.port:
            args.extend(['-P', conn.port])
        if conn.host:
            args.extend(['-h', conn.host])
        args.append(job.name)
        return args, None

    elif job.dbms == DbmsKind.POSTGRES.value:
        args = [Config.PG_DUMP_BIN]
        if conn.port:
            args.extend(['-p', conn.port])
        if conn.host:
            args.extend(['-h', conn.host])
        args.extend(['-U', conn.username, job.name])
        env = dict(os.environ)
        env['PGPASSWORD'] = conn.password
        return args, env

    raise CommandError(
        f"Unsupported DBMS: {job.dbms!r}. "
        f"Valid options: {[kind.value for kind in DbmsKind]}"
    )


def package_list_command() -> List[str]:
    return [Config.DPKG_BIN, '--get-selections']


def _redact(args: List[str]) -> str:
    # mysqldump takes the password glued to -p
    shown = ['-p****' if arg.startswith('-p') and len(arg) > 2 else arg for arg in args]
    return ' '.join(shown)


def run_command(args: List[str], stdout=None, env: Optional[Dict[str, str]] = None) -> int:
    """
    Run a command to completion.

    Args:
        args: Argument list
        stdout: Optional file object receiving standard output
        env: Optional environment (default: inherit)

    Returns:
        Exit status of the command, 127 if it is not installed, 126 if it
        cannot be started
    """
    logger.debug(f"Running: {_redact(args)}")

    try:
        completed = subprocess.run(args, stdout=stdout, env=env)
    except FileNotFoundError:
        logger.error(f"Command not found: {args[0]}")
        return EXIT_NOT_FOUND
    except OSError as e:
        logger.error(f"Command cannot be started: {args[0]}: {e}")
        return EXIT_NOT_EXECUTABLE

    if completed.returncode != 0:
        logger.warning(f"{os.path.basename(args[0])} exited with status {completed.returncode}")

    return completed.returncode


def run_to_file(args: List[str], output_path: Path) -> int:
    """
    Run a command with standard output redirected to a file.

    Returns:
        Exit status of the command, 1 if the output file cannot be written
    """
    try:
        with open(output_path, 'wb') as output:
            return run_command(args, stdout=output)
    except OSError as e:
        logger.error(f"Cannot write {output_path}: {e}")
        return 1


def dump_compressed(args: List[str], output_path: Path, env: Optional[Dict[str, str]] = None) -> int:
    """
    Stream a dump command's output through gzip into output_path.

    Both the dump process and the compression are observed: the dump's
    exit status wins when non-zero, otherwise a compression failure
    yields 1.

    Returns:
        Combined exit status
    """
    logger.debug(f"Running: {_redact(args)} | gzip > {output_path}")

    try:
        process = subprocess.Popen(args, stdout=subprocess.PIPE, env=env)
    except FileNotFoundError:
        logger.error(f"Command not found: {args[0]}")
        return EXIT_NOT_FOUND
    except OSError as e:
        logger.error(f"Command cannot be started: {args[0]}: {e}")
        return EXIT_NOT_EXECUTABLE

    compress_code = 0
    try:
        with gzip.open(output_path, 'wb') as output:
            shutil.copyfileobj(process.stdout, output)
    except OSError as e:
        logger.error(f"Failed to compress dump into {output_path}: {e}")
        compress_code = 1
    finally:
        process.stdout.close()
        dump_code = process.wait()

    if dump_code != 0:
        logger.warning(f"{os.path.basename(args[0])} exited with status {dump_code}")
        return dump_code

    return compress_code

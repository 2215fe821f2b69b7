"""Filesystem and subprocess helpers shared by the provisioning phases."""

import datetime
import fcntl
import logging
import os
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from debian_workstation.errors import BackupError, WorkstationError, WriteError

logger = logging.getLogger("debian_workstation")


# ----------------------------------------------------------------
# Backups
# ----------------------------------------------------------------
def backup_file(file_path: Union[str, Path]) -> Optional[Path]:
    """
    Create a backup of a file with timestamp.

    Args:
        file_path: Path to the file to back up

    Returns:
        Path to the backup file, or None if there was nothing to back up

    Raises:
        BackupError: If the file exists but could not be copied
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        return None

    timestamp = datetime.datetime.now().strftime("%Y%m%d%H%M%S")
    backup_path = file_path.with_suffix(f"{file_path.suffix}.{timestamp}.bak")

    try:
        shutil.copy2(file_path, backup_path)
    except OSError as e:
        raise BackupError(f"Could not back up {file_path} to {backup_path}: {e}")
    logger.info(f"Backed up {file_path} to {backup_path}")
    return backup_path


# ----------------------------------------------------------------
# Atomic Writes
# ----------------------------------------------------------------
@contextmanager
def locked_file(path: Union[str, Path]) -> Iterator[Path]:
    """
    Hold an exclusive flock for the lifetime of the block.

    The lock lives on a sidecar "<path>.lock" file because the target itself
    is swapped out by atomic_write().
    """
    path = Path(path)
    lock_path = path.with_name(path.name + ".lock")
    try:
        fd = os.open(str(lock_path), os.O_RDWR | os.O_CREAT, 0o600)
    except OSError as e:
        raise WriteError(f"Could not open lock file {lock_path}: {e}")
    try:
        fcntl.flock(fd, fcntl.LOCK_EX)
        yield path
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)


def atomic_write(path: Union[str, Path], content: str, mode: int = 0o644) -> None:
    """
    Replace a file so readers only ever see the old or the new contents.

    Args:
        path: File to replace
        content: New text contents
        mode: Permission bits of the new file

    Raises:
        WriteError: If the temporary file cannot be written or moved into place
    """
    path = Path(path)
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        with os.fdopen(fd, "w") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise WriteError(f"Failed to write {path}: {e}")


# ----------------------------------------------------------------
# Commands
# ----------------------------------------------------------------
def command_exists(command: str) -> bool:
    """Check if a command exists in the system."""
    return shutil.which(command) is not None


def run_command(
    command: List[str],
    capture_output: bool = False,
    text: bool = False,
    check: bool = True,
    timeout: Optional[float] = None,
    **kwargs,
) -> subprocess.CompletedProcess:
    """
    Run a command, logging it first.

    Args:
        command: Command as a list of strings
        capture_output: Whether to capture stdout/stderr
        text: Whether to decode output as text
        check: Whether to check the return code
        timeout: Seconds before the command is killed
        **kwargs: Passed through to subprocess.run (cwd, env, ...)

    Returns:
        CompletedProcess instance with command results
    """
    logger.debug(f"Executing: {' '.join(command)}")
    return subprocess.run(
        command,
        capture_output=capture_output,
        text=text,
        check=check,
        timeout=timeout,
        **kwargs,
    )


def download_file(url: str, dest_path: Union[str, Path]) -> None:
    """
    Download a file from a URL to a local path with wget, falling back to curl.

    Raises:
        WorkstationError: If both downloaders fail
    """
    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        run_command(["wget", "-q", url, "-O", str(dest_path)])
        return
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning(f"wget failed for {url}: {e}; trying curl")

    try:
        run_command(["curl", "-fsSL", "-o", str(dest_path), url])
    except (OSError, subprocess.SubprocessError) as e:
        raise WorkstationError(f"Could not download {url}: {e}")


def check_root() -> bool:
    return os.geteuid() == 0

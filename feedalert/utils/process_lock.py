"""
Process Lock Utilities
======================

Refresh cycles against one database must never overlap. The scheduler
takes an exclusive ``flock`` on a lock file derived from the database path
before its first cycle and holds it until it stops; a second scheduler on
the same database finds the lock taken and refuses to start.
"""

import fcntl
import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class ProcessLock:
    """Non-blocking exclusive file lock; the holder's PID is written into it."""

    def __init__(self, lock_file: Path):
        self.lock_file = Path(lock_file)
        self._fd: Optional[int] = None

    @property
    def acquired(self) -> bool:
        return self._fd is not None

    def acquire(self) -> bool:
        """Take the lock.

        Returns:
            False if another process (or another ProcessLock) holds it
        """
        if self.acquired:
            return True

        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_file, os.O_CREAT | os.O_RDWR, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            holder = self.holder_pid()
            logger.warning(
                f"Scheduler lock {self.lock_file} held by PID {holder}" if holder
                else f"Scheduler lock {self.lock_file} is held"
            )
            return False

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd
        logger.info(f"Scheduler lock acquired: {self.lock_file}")
        return True

    def release(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            self.lock_file.unlink(missing_ok=True)
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        logger.info(f"Scheduler lock released: {self.lock_file}")

    def holder_pid(self) -> Optional[int]:
        try:
            return int(self.lock_file.read_text().strip())
        except (OSError, ValueError):
            return None

    def __enter__(self) -> "ProcessLock":
        if not self.acquire():
            raise RuntimeError(f"Could not acquire process lock: {self.lock_file}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


def scheduler_lock(database_path: str, lock_dir: Optional[str] = None) -> ProcessLock:
    """Lock guarding refresh cycles for one database file.

    Different spellings of the same path map to the same lock.
    """
    digest = hashlib.sha256(str(Path(database_path).resolve()).encode()).hexdigest()[:16]
    directory = Path(lock_dir) if lock_dir else Path(tempfile.gettempdir())
    return ProcessLock(directory / f"feedalert-scheduler-{digest}.lock")

"""
Run Lock Utilities
==================

Keeps at most one import run active at a time, both inside one process
(worker threads, the service loop) and across processes (cron plus a manual
``run``). Acquisition never blocks: a trigger that finds the lock held is
dropped, not queued.
"""

import os
import fcntl
import logging
import tempfile
import threading
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class ProcessLock:
    """File-based lock excluding other processes."""

    def __init__(self, lock_name: str, lock_dir: Optional[str] = None):
        """
        Initialize process lock.

        Args:
            lock_name: Name for the lock file (without extension)
            lock_dir: Directory for lock files (defaults to the system temp dir)
        """
        if lock_dir is None:
            lock_dir = tempfile.gettempdir()

        self.lock_file = Path(lock_dir) / f"{lock_name}.lock"
        self.lock_fd: Optional[int] = None
        self.acquired = False

    def acquire(self) -> bool:
        """
        Acquire the lock without blocking.

        Returns:
            True if lock was acquired, False if another holder has it
        """
        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
            self.lock_fd = os.open(str(self.lock_file), os.O_CREAT | os.O_RDWR)

            fcntl.flock(self.lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)

            os.ftruncate(self.lock_fd, 0)
            os.write(self.lock_fd, f"{os.getpid()}\n".encode())
            os.fsync(self.lock_fd)

            self.acquired = True
            logger.debug(f"Process lock acquired: {self.lock_file}")
            return True

        except OSError:
            if self.lock_fd is not None:
                os.close(self.lock_fd)
                self.lock_fd = None

            existing_pid = self.get_lock_holder_pid()
            if existing_pid:
                logger.info(f"Process lock held by PID {existing_pid}: {self.lock_file}")
            else:
                logger.info(f"Process lock unavailable: {self.lock_file}")

            return False

    def release(self) -> None:
        """Release the lock."""
        if self.lock_fd is not None and self.acquired:
            try:
                fcntl.flock(self.lock_fd, fcntl.LOCK_UN)
                os.close(self.lock_fd)
                logger.debug(f"Process lock released: {self.lock_file}")
            except OSError as e:
                logger.warning(f"Error releasing lock: {e}")
            finally:
                self.lock_fd = None
                self.acquired = False

    def get_lock_holder_pid(self) -> Optional[int]:
        """Get PID of the process holding the lock."""
        try:
            if self.lock_file.exists():
                content = self.lock_file.read_text().strip()
                return int(content)
        except (ValueError, OSError):
            pass
        return None

    def __enter__(self):
        if not self.acquire():
            raise RuntimeError(f"Could not acquire process lock: {self.lock_file}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()


class RunLock:
    """Non-blocking lock allowing a single import run at a time."""

    def __init__(self, name: str, lock_dir: Optional[str] = None, use_file_lock: bool = True):
        self.name = name
        self._thread_lock = threading.Lock()
        self._process_lock = ProcessLock(name, lock_dir) if use_file_lock else None

    def acquire(self) -> bool:
        """Try to take the lock. Returns False if a run is already active."""
        if not self._thread_lock.acquire(blocking=False):
            logger.info(f"Run lock '{self.name}' held in this process")
            return False

        if self._process_lock is not None and not self._process_lock.acquire():
            self._thread_lock.release()
            return False

        return True

    def release(self) -> None:
        if self._process_lock is not None:
            self._process_lock.release()
        if self._thread_lock.locked():
            self._thread_lock.release()

    @property
    def locked(self) -> bool:
        return self._thread_lock.locked()

"""
Instance Lock - Prevents two str00py watchers from running at once.

Two watchers would each start their own challenges for the same app, so
`main.py run` takes this lock first.

Cross-platform implementation using file locking:
- Unix (macOS/Linux): fcntl.flock()
- Windows: msvcrt.locking()

The OS releases the lock when the process terminates, even on crashes.
"""

import os
import sys
import logging
from pathlib import Path
from typing import IO, Optional

import config

logger = logging.getLogger(__name__)

# Bytes locked on Windows (msvcrt needs a non-empty range)
_WINDOWS_LOCK_BYTES = 32


def _is_process_running(pid: int) -> bool:
    """
    Check if a process with the given PID is currently running.

    Args:
        pid: Process ID to check.

    Returns:
        True if the process is running, False otherwise.
    """
    if pid <= 0:
        return False

    try:
        if sys.platform == 'win32':
            import ctypes
            kernel32 = ctypes.windll.kernel32
            PROCESS_QUERY_LIMITED_INFORMATION = 0x1000
            handle = kernel32.OpenProcess(PROCESS_QUERY_LIMITED_INFORMATION, False, pid)
            if handle:
                kernel32.CloseHandle(handle)
                return True
            return False
        else:
            # Signal 0 checks existence without touching the process
            os.kill(pid, 0)
            return True
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user
        return True
    except OSError:
        return False


class InstanceLock:
    """
    Cross-platform instance lock using file locking.

    Usage:
        with InstanceLock() as lock:
            if not lock.is_acquired():
                sys.exit(1)
            ...
    """

    def __init__(self, lock_file: Optional[Path] = None):
        """
        Initialize instance lock.

        Args:
            lock_file: Path to lock file (default: config.INSTANCE_LOCK_FILE)
        """
        self.lock_file = lock_file or config.INSTANCE_LOCK_FILE
        self._lock_handle: Optional[IO] = None
        self._acquired = False

    def acquire(self) -> bool:
        """
        Try to acquire the instance lock without blocking.

        Returns:
            True if acquired, False if another instance holds it.
        """
        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create lock directory: {e}")
            return False

        if sys.platform == 'win32':
            acquired = self._acquire_windows()
        else:
            acquired = self._acquire_unix()

        if acquired:
            self._write_pid()
            self._acquired = True
            logger.debug(f"Instance lock acquired (PID: {os.getpid()})")
        else:
            logger.info(f"Another instance holds {self.lock_file} (PID: {self.get_owner_pid()})")
        return acquired

    def _acquire_unix(self) -> bool:
        import fcntl
        # 'a+' so a failed attempt does not truncate the owner's PID
        handle = open(self.lock_file, 'a+')
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            handle.close()
            return False
        self._lock_handle = handle
        return True

    def _acquire_windows(self) -> bool:
        import msvcrt
        mode = 'r+' if self.lock_file.exists() else 'w+'
        handle = open(self.lock_file, mode)
        if mode == 'w+':
            handle.write('0' * _WINDOWS_LOCK_BYTES)
            handle.flush()
        handle.seek(0)
        try:
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, _WINDOWS_LOCK_BYTES)
        except OSError:
            handle.close()
            return False
        self._lock_handle = handle
        return True

    def _write_pid(self) -> None:
        handle = self._lock_handle
        if handle is None:
            return
        handle.seek(0)
        handle.truncate()
        handle.write(str(os.getpid()).ljust(_WINDOWS_LOCK_BYTES) if sys.platform == 'win32' else str(os.getpid()))
        handle.flush()

    def get_owner_pid(self) -> Optional[int]:
        """
        Read the PID stored in the lock file.

        Returns:
            PID of the owning process if it is still alive, else None.
        """
        try:
            content = self.lock_file.read_text().strip()
        except OSError:
            return None
        if not content.isdigit():
            return None
        pid = int(content)
        return pid if _is_process_running(pid) else None

    def release(self) -> None:
        """Release the lock and remove the lock file."""
        if self._lock_handle is None:
            return

        try:
            if sys.platform == 'win32':
                import msvcrt
                try:
                    self._lock_handle.seek(0)
                    msvcrt.locking(self._lock_handle.fileno(), msvcrt.LK_UNLCK, _WINDOWS_LOCK_BYTES)
                except OSError:
                    pass
            # On Unix, closing the file releases flock
            self._lock_handle.close()
        finally:
            self._lock_handle = None
            self._acquired = False

        try:
            self.lock_file.unlink()
        except OSError:
            pass
        logger.debug("Instance lock released")

    def is_acquired(self) -> bool:
        """Check if lock is currently held by this instance."""
        return self._acquired

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False

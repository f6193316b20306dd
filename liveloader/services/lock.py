"""Exclusive per-(operation, entity) locks backed by flock'd files."""
import fcntl
import json
import logging
import os
import secrets
import socket
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Iterator, Optional

from liveloader.config import settings
from liveloader.utils.normalize import sanitize_lock_name

logger = logging.getLogger(__name__)

RETRY_INTERVAL = 0.1  # seconds between attempts when a timeout is given


class LockError(Exception):
    """Lock could not be acquired or released."""
    pass


@dataclass
class LockToken:
    """Proof of ownership of one held lock."""
    operation: str
    entity: str
    token: str
    path: Path
    pid: int
    hostname: str
    acquired_at: str
    _handle: Optional[IO] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "entity": self.entity,
            "pid": self.pid,
            "hostname": self.hostname,
            "acquired_at": self.acquired_at,
            "lock_token": self.token,
        }


def _pid_alive(pid: int) -> bool:
    """True if a process with this pid exists on this host."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by another user
        return True
    return True


def _same_inode(handle: IO, path: Path) -> bool:
    """False if the lock file was unlinked or replaced after we opened it."""
    try:
        return os.fstat(handle.fileno()).st_ino == os.stat(path).st_ino
    except FileNotFoundError:
        return False


class LockService:
    """Non-blocking mutual exclusion keyed by (operation, entity).

    Each lock is a file `<lock_dir>/<operation>_<entity>.lock` held with an
    exclusive flock and containing JSON metadata (operation, entity, pid,
    hostname, acquired_at, lock_token). The kernel drops the flock when the
    holder dies, so a crashed run never blocks the next one. A holder that
    is still alive but older than `stale_hours` (or whose pid no longer
    exists on this host) is treated as stale and its file is reclaimed.
    """

    def __init__(self, lock_dir: Optional[str] = None, stale_hours: Optional[int] = None):
        self.lock_dir = Path(lock_dir or settings.lock_dir)
        self.stale_hours = stale_hours if stale_hours is not None else settings.stale_lock_hours
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        self._held: dict[str, LockToken] = {}

    def lock_path(self, operation: str, entity: str) -> Path:
        return self.lock_dir / f"{sanitize_lock_name(operation)}_{sanitize_lock_name(entity)}.lock"

    def acquire(self, operation: str, entity: str, timeout: float = 0) -> LockToken:
        """Acquire the (operation, entity) lock.

        Args:
            operation: Operation name, e.g. "import" or "download"
            entity: Entity the operation runs against, usually an artist name
            timeout: Seconds to keep retrying; 0 fails immediately

        Returns:
            LockToken to pass to release()

        Raises:
            LockError: Lock is held by another live run
        """
        path = self.lock_path(operation, entity)
        deadline = time.monotonic() + max(timeout, 0)
        reclaimed = False

        logger.debug(f"Acquiring lock {path.name} (timeout={timeout})")

        while True:
            handle = self._try_flock(path)
            if handle is not None:
                return self._write_metadata(handle, path, operation, entity)

            info = self._read_metadata(path)
            if not reclaimed and info and self._is_stale(info):
                logger.warning(
                    f"Reclaiming stale lock {path.name} "
                    f"(pid {info.get('pid')} on {info.get('hostname')} since {info.get('acquired_at')})"
                )
                self._unlink(path)
                reclaimed = True
                continue

            if time.monotonic() >= deadline:
                holder = ""
                if info:
                    holder = (
                        f" (pid {info.get('pid')} on {info.get('hostname')}"
                        f" since {info.get('acquired_at')})"
                    )
                raise LockError(
                    f"Another '{operation}' operation is already running for '{entity}'{holder}. "
                    f"Wait for it to complete or release the lock."
                )

            time.sleep(RETRY_INTERVAL)

    def release(self, token: LockToken) -> None:
        """Release a lock after verifying the caller still owns it.

        Raises:
            LockError: Token is not held by this service or no longer matches the file
        """
        held = self._held.get(token.token)
        if held is None or held._handle is None:
            raise LockError(f"Lock is not held: {token.operation}/{token.entity}")

        handle = held._handle
        try:
            info = self._read_metadata(token.path)
            if info is not None and info.get("lock_token") != token.token:
                raise LockError(
                    f"Invalid lock token for {token.path.name}: lock was reclaimed by "
                    f"pid {info.get('pid')} on {info.get('hostname')}"
                )
            if _same_inode(handle, token.path):
                self._unlink(token.path)
        finally:
            self._held.pop(token.token, None)
            held._handle = None
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            handle.close()

        logger.info(f"Lock released: {token.operation}/{token.entity}")

    @contextmanager
    def hold(self, operation: str, entity: str, timeout: float = 0) -> Iterator[LockToken]:
        """Context manager form of acquire/release."""
        token = self.acquire(operation, entity, timeout)
        try:
            yield token
        finally:
            if token.token in self._held:
                self.release(token)

    def is_locked(self, operation: str, entity: str) -> bool:
        """True if any process (including this one) holds the lock."""
        path = self.lock_path(operation, entity)
        if not path.exists():
            return False

        handle = self._try_flock(path, create=False)
        if handle is None:
            return path.exists()

        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        handle.close()
        return False

    def get_lock_info(self, operation: str, entity: str) -> Optional[dict]:
        """Stored metadata for a lock, or None if there is no lock file."""
        return self._read_metadata(self.lock_path(operation, entity))

    def list_locks(self) -> list[dict]:
        """Metadata of every lock file in the lock directory."""
        locks = []
        for path in sorted(self.lock_dir.glob("*.lock")):
            info = self._read_metadata(path) or {}
            info["file"] = path.name
            info["stale"] = self._is_stale(info) if info.get("pid") else False
            locks.append(info)
        return locks

    def force_release(self, operation: str, entity: str) -> bool:
        """Delete a lock file regardless of owner. Returns False if none existed."""
        path = self.lock_path(operation, entity)
        if not path.exists():
            return False

        logger.warning(f"FORCE releasing lock {path.name}")
        return self._unlink(path)

    def cleanup_stale_locks(self, max_age_hours: Optional[int] = None) -> int:
        """Remove lock files nobody holds or whose holder is stale.

        Returns:
            Number of lock files removed
        """
        max_age = max_age_hours if max_age_hours is not None else self.stale_hours
        removed = 0

        for path in self.lock_dir.glob("*.lock"):
            handle = self._try_flock(path, create=False)
            if handle is not None:
                # Leftover file from a holder that exited without releasing
                if _same_inode(handle, path):
                    self._unlink(path)
                    removed += 1
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
                handle.close()
                continue

            info = self._read_metadata(path)
            if info and self._is_stale(info, max_age):
                logger.info(f"Removing stale lock {path.name} (pid {info.get('pid')})")
                if self._unlink(path):
                    removed += 1

        return removed

    def release_all(self) -> None:
        """Release every lock this service instance holds."""
        for token in list(self._held.values()):
            try:
                self.release(token)
            except LockError as e:
                logger.error(f"Failed to release lock {token.path.name}: {e}")

    def _try_flock(self, path: Path, create: bool = True) -> Optional[IO]:
        """Open and exclusively flock the file; None if someone else holds it."""
        try:
            handle = open(path, "a+" if create else "r+")
        except FileNotFoundError:
            return None

        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            handle.close()
            return None

        # Lost a race with an unlink: the locked inode is no longer at this path
        if create and not _same_inode(handle, path):
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            handle.close()
            return self._try_flock(path, create)

        return handle

    def _write_metadata(self, handle: IO, path: Path, operation: str, entity: str) -> LockToken:
        token = LockToken(
            operation=operation,
            entity=entity,
            token=secrets.token_hex(16),
            path=path,
            pid=os.getpid(),
            hostname=socket.gethostname(),
            acquired_at=datetime.now(timezone.utc).isoformat(),
            _handle=handle,
        )

        handle.seek(0)
        handle.truncate()
        json.dump(token.to_dict(), handle, indent=2)
        handle.flush()
        os.fsync(handle.fileno())

        self._held[token.token] = token
        logger.info(f"Lock acquired: {operation}/{entity} (pid {token.pid})")
        return token

    def _read_metadata(self, path: Path) -> Optional[dict]:
        try:
            content = path.read_text()
        except FileNotFoundError:
            return None
        if not content.strip():
            return None
        try:
            info = json.loads(content)
        except json.JSONDecodeError:
            logger.warning(f"Unreadable lock metadata in {path.name}")
            return None
        return info if isinstance(info, dict) else None

    def _is_stale(self, info: dict, max_age_hours: Optional[int] = None) -> bool:
        """Stale = holder pid gone on this host, or held longer than max_age_hours."""
        max_age = max_age_hours if max_age_hours is not None else self.stale_hours

        if info.get("hostname") == socket.gethostname():
            try:
                pid = int(info.get("pid", 0))
            except (TypeError, ValueError):
                pid = 0
            if pid and not _pid_alive(pid):
                return True

        acquired_at = info.get("acquired_at")
        if not acquired_at:
            return False
        try:
            acquired = datetime.fromisoformat(acquired_at)
        except ValueError:
            return False
        if acquired.tzinfo is None:
            acquired = acquired.replace(tzinfo=timezone.utc)

        age_hours = (datetime.now(timezone.utc) - acquired).total_seconds() / 3600
        return age_hours > max_age

    def _unlink(self, path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False

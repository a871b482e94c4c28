"""
Secure wallet record storage for the identity module.
"""
import os
import json
import stat
import logging
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Any, Iterator, Optional

import portalocker

logger = logging.getLogger(__name__)

EMPTY_STORE: Dict[str, Any] = {"wallets": {}}


class KeyStore:
    """
    Thread-safe and process-safe wallet record store.

    Every mutation is a read-modify-write of the whole mapping performed under
    one advisory file lock. Writes replace the file atomically, so reads do
    not take the lock.
    """

    def __init__(self, store_path: Optional[os.PathLike] = None, lock_timeout: float = 10):
        """
        Initialize the key store.

        Args:
            store_path: Optional custom path for the store file
            lock_timeout: Seconds to wait for the write lock
        """
        if store_path is None:
            from ..config import default_store_path
            store_path = default_store_path()
        self.store_path = Path(store_path)
        self.lock_timeout = lock_timeout
        self._thread_lock = threading.RLock()

        self._ensure_dir()

    def _ensure_dir(self):
        """Ensure store directory and file exist with owner-only permissions"""
        directory = self.store_path.parent

        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            if os.name == 'posix':
                os.chmod(directory, stat.S_IRWXU)  # 0700

        if not self.store_path.exists():
            with self._write_lock():
                if not self.store_path.exists():
                    self._write(EMPTY_STORE)

        if os.name == 'posix':
            os.chmod(self.store_path, stat.S_IRUSR | stat.S_IWUSR)  # 0600
        elif os.name == 'nt':
            # NOTE: Windows ACLs are not restricted here; use a KMS-backed
            # store for production deployments on Windows
            logger.info("Windows file permissions cannot be restricted to current user only.")

    def _get_lock_path(self) -> str:
        """Get path for the lock file"""
        return str(self.store_path) + '.lock'

    @contextmanager
    def _write_lock(self) -> Iterator[None]:
        with self._thread_lock:
            with portalocker.Lock(self._get_lock_path(), timeout=self.lock_timeout):
                yield

    def _write(self, data: Dict[str, Any]):
        """Atomically replace the store file. Caller must hold the write lock."""
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.store_path.parent), prefix=".wallets-", suffix=".tmp"
        )
        try:
            # mkstemp creates the file 0600
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.store_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def read(self) -> Dict[str, Any]:
        """
        Read the last durably written snapshot.

        Returns:
            Dictionary with store contents
        """
        try:
            with open(self.store_path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, FileNotFoundError):
            return {"wallets": {}}
        if not isinstance(data.get("wallets"), dict):
            data["wallets"] = {}
        return data

    @contextmanager
    def transaction(self) -> Iterator[Dict[str, Any]]:
        """
        Read-modify-write the whole store under the write lock.

        The yielded mapping is written back only if the block exits normally
        and the contents changed.
        """
        with self._write_lock():
            data = self.read()
            before = json.dumps(data, sort_keys=True)
            yield data
            if json.dumps(data, sort_keys=True) != before:
                self._write(data)

    def get_record(self, key: str) -> Optional[Dict[str, Any]]:
        return self.read()["wallets"].get(key)

    def set_record(self, key: str, record: Dict[str, Any]):
        with self.transaction() as data:
            data["wallets"][key] = record

    def delete_record(self, key: str) -> bool:
        """
        Delete a record.

        Returns:
            True if a record was removed
        """
        with self.transaction() as data:
            return data["wallets"].pop(key, None) is not None

    def list_records(self) -> Dict[str, Dict[str, Any]]:
        return dict(self.read()["wallets"])

    def clear(self):
        """Remove all records (for testing)"""
        with self._write_lock():
            self._write({"wallets": {}})

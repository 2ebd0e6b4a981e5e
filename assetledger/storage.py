# assetledger/storage.py
"""
JSON index files shared by the registry, event log and principal store.
"""

import fcntl
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import StorageError

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"


def load_json(path: Path) -> Optional[Dict[str, Any]]:
    """
    Load a JSON index file.

    Returns None if the file does not exist yet. A file that exists but
    cannot be parsed raises StorageError rather than being reset.
    """
    if not path.exists():
        return None
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise StorageError(f"Failed to load {path.name}: {e}", details={"path": str(path)})
    if not isinstance(data, dict):
        raise StorageError(f"Malformed {path.name}", details={"path": str(path)})
    logger.debug(f"Loaded {path}")
    return data


def save_json(path: Path, data: Dict[str, Any]) -> None:
    """Write a JSON index file via a temp file and rename."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    logger.debug(f"Saved {path}")


class DirectoryLock:
    """
    Exclusive, non-blocking lock on a data directory.

    Holds an flock on store_dir/.lock for as long as the owner keeps the
    directory open. A second opener, in this process or another, is
    refused instead of silently overwriting the first one's writes.
    """

    def __init__(self, store_dir: Path):
        self.lock_path = Path(store_dir) / ".lock"
        self._fd: Optional[int] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        if self._fd is not None:
            return
        fd = os.open(self.lock_path, os.O_CREAT | os.O_RDWR, 0o600)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            os.close(fd)
            raise StorageError(
                "Data directory is in use by another ledger",
                details={"path": str(self.lock_path.parent)},
            )
        os.ftruncate(fd, 0)
        os.write(fd, str(os.getpid()).encode())
        self._fd = fd
        logger.debug(f"Locked {self.lock_path}")

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug(f"Released {self.lock_path}")

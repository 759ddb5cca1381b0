"""Durable key/value storage shared by page sessions and the background service.

Each key lives in its own JSON file under the data directory:

- ``pendingJobs.json``  list of pending jobs awaiting user confirmation
- ``failedJobs.json``   list of failed delivery entries awaiting retry
- ``authToken.json``    bearer token for the backend
- ``apiUrl.json``       backend base URL override
- ``dashboardUrl.json`` dashboard URL override
- ``devMode.json``      use development URLs when true

All writes use the atomic write pattern:
  1. Write to .tmp file
  2. fsync
  3. Rename to target (atomic on POSIX)

Before each write, a .bak backup is created. If the primary file is
corrupted, it's restored from .bak automatically.

Callers do read-modify-write without awaiting in between, so within one
event loop no update can be lost.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

PENDING_JOBS_KEY = "pendingJobs"
FAILED_JOBS_KEY = "failedJobs"
AUTH_TOKEN_KEY = "authToken"
API_URL_KEY = "apiUrl"
DASHBOARD_URL_KEY = "dashboardUrl"
DEV_MODE_KEY = "devMode"

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"

_KEY_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


class LocalStorage:
    """JSON-file backed storage keyed by name."""

    def __init__(self, data_dir: str | Path = DEFAULT_DATA_DIR):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for ``key`` or ``default`` if unset."""
        return _safe_read_json(self._path(key), default=default)

    def set(self, key: str, value: Any) -> None:
        _backup_and_write(self._path(key), value)
        logger.debug("Stored %s", key)

    def remove(self, key: str) -> None:
        path = self._path(key)
        for p in (path, path.with_suffix(path.suffix + ".bak")):
            if p.exists():
                p.unlink()
        logger.debug("Removed %s", key)

    def get_list(self, key: str) -> list:
        value = self.get(key, default=[])
        if not isinstance(value, list):
            logger.error("Expected a list under %s, found %s; ignoring it", key, type(value).__name__)
            return []
        return value

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.data_dir / f"{key}.json"


# ── Internal Helpers ───────────────────────────────────────────────────────

def _safe_read_json(path: Path, default: Any = None) -> Any:
    """Read a JSON file, restoring from .bak if corrupted.

    If the primary file can't be parsed, tries .bak. If both fail,
    returns the default value and logs an error.
    """
    if not path.exists():
        return default

    try:
        with open(path, "r") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s: %s, trying backup", path, exc)

    bak_path = path.with_suffix(path.suffix + ".bak")
    if bak_path.exists():
        try:
            with open(bak_path, "r") as f:
                data = json.load(f)
            logger.info("Restored %s from backup", path)
            _atomic_write_json(path, data)
            return data
        except (json.JSONDecodeError, OSError) as exc:
            logger.error("Backup %s also corrupted: %s", bak_path, exc)

    logger.error("Could not read %s or its backup, using default", path)
    return default


def _backup_and_write(path: Path, data: Any) -> None:
    """Create a .bak backup of the current file, then atomically write new data."""
    if path.exists():
        bak_path = path.with_suffix(path.suffix + ".bak")
        try:
            shutil.copy2(path, bak_path)
        except OSError as exc:
            logger.warning("Failed to create backup of %s: %s", path, exc)

    _atomic_write_json(path, data)


def _atomic_write_json(path: Path, data: Any) -> None:
    """Write JSON data atomically using temp file + rename."""
    tmp_path = path.with_suffix(path.suffix + ".tmp")

    try:
        with open(tmp_path, "w") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())

        tmp_path.replace(path)
    except OSError as exc:
        logger.error("Failed to write %s: %s", path, exc)
        if tmp_path.exists():
            tmp_path.unlink()
        raise

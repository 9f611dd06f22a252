"""File-backed document store: one JSON array per collection.

Every write goes to a temporary file in the collection's directory and is
then renamed over the target with `os.replace`, so readers only ever see
the previous or the new complete file. That makes plain `load` calls
snapshot-consistent and lets them run without the collection lock.

Read-modify-write sequences must run inside `DocumentStore.locked`.
Locks are process-wide and keyed by the resolved file path. Separate
processes sharing a data directory are not coordinated.
"""

from __future__ import annotations

import json
import logging
import os
import re
import stat
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List

from .errors import StorageBusyError, StorageCorruptError, StorageWriteError

_LOGGER = logging.getLogger("library_api.storage")

COLLECTION_NAME = re.compile(r"[a-z0-9_-]+")

# new collection files; existing files keep their mode across saves
DEFAULT_FILE_MODE = 0o644

_LOCKS: Dict[str, threading.Lock] = {}
_LOCKS_GUARD = threading.Lock()


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _LOCKS_GUARD:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = _LOCKS[key] = threading.Lock()
        return lock


class DocumentStore:
    """Load and atomically save named JSON collections under `data_dir`."""

    def __init__(self, data_dir: Path, lock_timeout: float = 10.0):
        self.data_dir = Path(data_dir)
        self.lock_timeout = lock_timeout
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, collection: str) -> Path:
        if not COLLECTION_NAME.fullmatch(collection or ""):
            raise ValueError(f"invalid collection name: {collection!r}")
        return self.data_dir / f"{collection}.json"

    def load(self, collection: str) -> List[dict]:
        """Return every record in `collection`.

        A missing file is the bootstrap case and yields an empty list.
        Anything else that is not a JSON array of objects raises
        `StorageCorruptError`.
        """
        path = self.path_for(collection)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as exc:
            _LOGGER.error("collection_unreadable %s: %s", path, exc)
            raise StorageCorruptError(f"collection '{collection}' is unreadable") from exc
        try:
            data = json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)
        except (ValueError, RecursionError) as exc:
            _LOGGER.error("collection_corrupt %s: %s", path, exc)
            raise StorageCorruptError(f"collection '{collection}' is not valid JSON") from exc
        if not isinstance(data, list):
            _LOGGER.error("collection_corrupt %s: top-level %s", path, type(data).__name__)
            raise StorageCorruptError(f"collection '{collection}' is not a JSON array")
        for idx, item in enumerate(data):
            if not isinstance(item, dict):
                _LOGGER.error("collection_corrupt %s: item %d is %s", path, idx, type(item).__name__)
                raise StorageCorruptError(f"collection '{collection}' holds a non-object at index {idx}")
        return data

    @staticmethod
    def _file_mode(path: Path) -> int:
        try:
            return stat.S_IMODE(path.stat().st_mode)
        except FileNotFoundError:
            return DEFAULT_FILE_MODE

    def save(self, collection: str, records: List[dict]) -> None:
        """Replace the whole collection file with `records`.

        Records that JSON cannot represent (such as `NaN`) raise `TypeError`.
        On `StorageWriteError` the previous file content is left in place.
        """
        path = self.path_for(collection)
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            raise TypeError("records must be a list of dicts")
        try:
            payload = json.dumps(records, ensure_ascii=False, indent=2, allow_nan=False)
        except (ValueError, RecursionError) as exc:
            raise TypeError(f"records are not representable as JSON: {exc}") from exc
        tmp_name = None
        try:
            mode = self._file_mode(path)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{collection}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp_name = fh.name
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            _LOGGER.exception("collection_write_failed %s", path)
            raise StorageWriteError(f"could not write collection '{collection}'") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    _LOGGER.warning("temp file left behind: %s", tmp_name)

    @contextmanager
    def locked(self, collection: str) -> Iterator[None]:
        """Hold the collection's lock for a load-modify-save sequence.

        Waits at most `lock_timeout` seconds before raising `StorageBusyError`.
        The lock is released even if the body raises.
        """
        lock = _lock_for(self.path_for(collection))
        if not lock.acquire(timeout=self.lock_timeout):
            _LOGGER.error("collection_lock_timeout %s after %.1fs", collection, self.lock_timeout)
            raise StorageBusyError(f"collection '{collection}' is busy, try again")
        try:
            yield
        finally:
            lock.release()

"""Flat JSON documents used as the board's database.

A document is one JSON array of objects in one file. Every mutation reads
the whole array, changes it in memory and writes the whole array back
through a temp file and ``os.replace``, so a reader never sees a
half-written file. Mutations on the same file are serialized by a lock
shared by every ``JsonDocument`` pointing at that path.
"""
import json
import logging
import os
import tempfile
from contextlib import contextmanager, suppress
from threading import Lock, RLock

from board.errors import StorageIOFailure


logger = logging.getLogger(__name__)

_document_locks = {}
_document_locks_guard = Lock()


def _lock_for(path: str) -> RLock:
    with _document_locks_guard:
        lock = _document_locks.get(path)
        if lock is None:
            lock = RLock()
            _document_locks[path] = lock
        return lock


class JsonDocument:
    def __init__(self, path: str):
        self.path = os.path.abspath(path)
        self._lock = _lock_for(self.path)

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    def read(self) -> list:
        with self._lock:
            return self._load()

    @contextmanager
    def transaction(self):
        """Yield the current records; commit them if the block exits cleanly.

        An exception raised inside the block discards the changes.
        """
        with self._lock:
            records = self._load()
            yield records
            self._commit(records)

    def mutate(self, fn):
        with self.transaction() as records:
            return fn(records)

    def _load(self) -> list:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            # First run: nothing written yet.
            return []
        except (OSError, ValueError) as e:
            logger.error("Failed to read %s: %s", self.path, e)
            raise StorageIOFailure(f"Could not read {self.name}") from e

        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            logger.error("%s does not hold a JSON array of objects", self.path)
            raise StorageIOFailure(f"Could not read {self.name}")
        return data

    def _commit(self, records: list):
        directory = os.path.dirname(self.path)
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(records, fh, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path is not None:
                with suppress(OSError):
                    os.unlink(tmp_path)
            logger.exception("Failed to write %s", self.path)
            raise StorageIOFailure(f"Could not write {self.name}") from e

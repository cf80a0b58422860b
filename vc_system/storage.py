"""
Record stores for issued credentials and revocation entries.

Both collections are append-ordered and listed newest-first. The JSON file
store rewrites the whole array on every append while holding a lock; that
serializes writers inside one process only, there is no multi-process
exclusion.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, TypeVar, Union

from .errors import StoreIOError

logger = logging.getLogger("RecordStore")

T = TypeVar("T")


class RecordStore(ABC, Generic[T]):
    """append / list / contains over records that expose ``id`` and ``to_dict()``"""

    @abstractmethod
    def append(self, record: T) -> None:
        ...

    @abstractmethod
    def list(self) -> List[T]:
        """All records, most recent first"""

    @abstractmethod
    def contains(self, record_id: str) -> bool:
        ...


class InMemoryStore(RecordStore[T]):
    def __init__(self):
        self._records: List[T] = []
        self._lock = threading.Lock()

    def append(self, record: T) -> None:
        with self._lock:
            self._records.insert(0, record)

    def list(self) -> List[T]:
        with self._lock:
            return list(self._records)

    def contains(self, record_id: str) -> bool:
        with self._lock:
            return any(r.id == record_id for r in self._records)

    def __len__(self) -> int:
        return len(self._records)


class JSONFileStore(RecordStore[T]):
    """
    JSON array file, newest record first

    Args:
        path: file to persist to, created (with parents) on first use
        factory: builds a record from its dict form
    """

    def __init__(self, path: Union[str, Path], factory: Callable[[Dict[str, Any]], T]):
        self.path = Path(path)
        self.factory = factory
        self._lock = threading.Lock()

    # ==================== FILE I/O ====================

    def _load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read {self.path}: {e}")
            raise StoreIOError(f"Failed to read {self.path}: {e}") from e
        if not isinstance(data, list):
            raise StoreIOError(f"{self.path} does not contain a JSON array")
        return data

    def _save(self, data: List[Dict[str, Any]]) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error(f"Failed to write {self.path}: {e}")
            raise StoreIOError(f"Failed to write {self.path}: {e}") from e

    # ==================== RECORD STORE ====================

    def append(self, record: T) -> None:
        with self._lock:
            data = self._load()
            data.insert(0, record.to_dict())
            self._save(data)

    def list(self) -> List[T]:
        with self._lock:
            data = self._load()
        try:
            return [self.factory(item) for item in data]
        except (KeyError, TypeError) as e:
            raise StoreIOError(f"Malformed record in {self.path}: {e}") from e

    def contains(self, record_id: str) -> bool:
        with self._lock:
            data = self._load()
        return any(isinstance(item, dict) and item.get("id") == record_id for item in data)

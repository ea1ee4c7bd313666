"""
Storage backends for version histories and restore points.

The controller only talks to the abstract repositories, so histories can
live in memory, in JSON files, or anywhere else that implements get/put.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import StorageError
from .models import RestorePoint, VersionHistory


logger = logging.getLogger(__name__)


class VersionRepository(ABC):
    """Keyed storage for version histories."""

    @abstractmethod
    def get(self, document_id: str) -> Optional[VersionHistory]:
        """Return the stored history, or None if the document is unknown."""

    @abstractmethod
    def put(self, history: VersionHistory) -> None:
        """Store a history, replacing any previous one for the same document."""

    @abstractmethod
    def document_ids(self) -> List[str]:
        pass


class RestorePointRepository(ABC):
    """Keyed storage for restore point lists."""

    @abstractmethod
    def get(self, document_id: str) -> List[RestorePoint]:
        """Return stored restore points, oldest first; empty if none."""

    @abstractmethod
    def put(self, document_id: str, points: List[RestorePoint]) -> None:
        pass

    @abstractmethod
    def document_ids(self) -> List[str]:
        pass


class InMemoryVersionRepository(VersionRepository):

    def __init__(self):
        self._histories: Dict[str, VersionHistory] = {}

    def get(self, document_id: str) -> Optional[VersionHistory]:
        return self._histories.get(document_id)

    def put(self, history: VersionHistory) -> None:
        self._histories[history.document_id] = history

    def document_ids(self) -> List[str]:
        return list(self._histories)


class InMemoryRestorePointRepository(RestorePointRepository):

    def __init__(self):
        self._points: Dict[str, List[RestorePoint]] = {}

    def get(self, document_id: str) -> List[RestorePoint]:
        return list(self._points.get(document_id, []))

    def put(self, document_id: str, points: List[RestorePoint]) -> None:
        self._points[document_id] = list(points)

    def document_ids(self) -> List[str]:
        return list(self._points)


def _safe_name(document_id: str) -> str:
    return "".join(c if c.isalnum() or c in "-_." else "_" for c in document_id)


class _JsonFileStore:
    """One JSON file per document under a storage directory."""

    def __init__(self, storage_path: Path, suffix: str):
        self.storage_path = Path(storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)
        self.suffix = suffix

    def path_for(self, document_id: str) -> Path:
        return self.storage_path / f"{_safe_name(document_id)}{self.suffix}"

    def load(self, document_id: str) -> Optional[dict]:
        path = self.path_for(document_id)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Could not read {path}: {e}")
            raise StorageError(f"Corrupt storage file: {path}", {"document_id": document_id}) from e

    def save(self, document_id: str, data: dict) -> None:
        path = self.path_for(document_id)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(path)

    def document_ids(self) -> List[str]:
        ids = []
        for path in sorted(self.storage_path.glob(f"*{self.suffix}")):
            data = self.load(path.name[: -len(self.suffix)])
            if data:
                ids.append(data["document_id"])
        return ids


class JsonFileVersionRepository(VersionRepository):
    """Stores each document's history in ``<storage_path>/<id>.versions.json``."""

    def __init__(self, storage_path: Path):
        self._store = _JsonFileStore(storage_path, ".versions.json")

    def get(self, document_id: str) -> Optional[VersionHistory]:
        data = self._store.load(document_id)
        if data is None:
            return None
        try:
            return VersionHistory.from_dict(data)
        except (KeyError, ValueError) as e:
            raise StorageError(
                f"Invalid version history for {document_id}", {"document_id": document_id}
            ) from e

    def put(self, history: VersionHistory) -> None:
        self._store.save(history.document_id, history.to_dict())

    def document_ids(self) -> List[str]:
        return self._store.document_ids()


class JsonFileRestorePointRepository(RestorePointRepository):
    """Stores each document's restore points in ``<storage_path>/<id>.restore_points.json``."""

    def __init__(self, storage_path: Path):
        self._store = _JsonFileStore(storage_path, ".restore_points.json")

    def get(self, document_id: str) -> List[RestorePoint]:
        data = self._store.load(document_id)
        if data is None:
            return []
        try:
            return [RestorePoint.from_dict(p) for p in data.get("restore_points", [])]
        except (KeyError, ValueError) as e:
            raise StorageError(
                f"Invalid restore points for {document_id}", {"document_id": document_id}
            ) from e

    def put(self, document_id: str, points: List[RestorePoint]) -> None:
        self._store.save(document_id, {
            "document_id": document_id,
            "restore_points": [p.to_dict() for p in points],
        })

    def document_ids(self) -> List[str]:
        return self._store.document_ids()


class DocumentLockRegistry:
    """Hands out one re-entrant lock per document id."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def lock_for(self, document_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(document_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[document_id] = lock
            return lock

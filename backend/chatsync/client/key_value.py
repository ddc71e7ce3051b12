"""Key-value capability backing the local store.

Values are JSON strings, mirroring browser-style storage.
"""
from abc import ABC, abstractmethod
import json
import os
from pathlib import Path
from typing import Dict, List, Optional


class KeyValueStore(ABC):
    """Async string key-value store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        ...


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, used in tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]


class JsonFileKeyValueStore(KeyValueStore):
    """All keys in a single JSON file, rewritten atomically on every change."""

    def __init__(self, path: str):
        self.path = Path(path).expanduser()
        self._data: Optional[Dict[str, str]] = None

    def _load(self) -> Dict[str, str]:
        if self._data is None:
            if self.path.exists():
                with self.path.open("r", encoding="utf-8") as f:
                    self._data = json.load(f)
            else:
                self._data = {}
        return self._data

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(self._data, f)
        os.replace(tmp_path, self.path)

    async def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    async def set(self, key: str, value: str) -> None:
        self._load()[key] = value
        self._flush()

    async def delete(self, key: str) -> None:
        if self._load().pop(key, None) is not None:
            self._flush()

    async def keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._load() if key.startswith(prefix)]

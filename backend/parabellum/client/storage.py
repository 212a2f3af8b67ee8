"""Durable key/value storage for the client session.

Only three keys are ever written: `token`, `refreshToken` and `user`.
"""
from __future__ import annotations
import json
import os
import tempfile
from typing import Any, Dict, Iterable, Optional

SESSION_KEYS = ('token', 'refreshToken', 'user')


class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def update(self, values: Dict[str, Any]):
        self._data.update(values)

    def remove(self, keys: Iterable[str]):
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> Dict[str, Any]:
        return dict(self._data)


class FileStorage(MemoryStorage):
    """JSON file backed storage; every write replaces the whole file atomically."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(self._read())

    def _read(self) -> Dict[str, Any]:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        return data if isinstance(data, dict) else {}

    def _flush(self):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory, prefix='.session-', suffix='.json')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(self._data, f, sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            os.unlink(tmp)
            raise

    def update(self, values: Dict[str, Any]):
        super().update(values)
        self._flush()

    def remove(self, keys: Iterable[str]):
        super().remove(keys)
        self._flush()

"""
Key/value backends for the snapshot store.

Both behave like a browser's localStorage: string keys, string values and a
finite capacity. Going over the quota raises StorageQuotaError. The quota
counts the encoded size of every value stored.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote, unquote


class StorageQuotaError(OSError):
    """Writing this value would exceed the backend's capacity."""


def _size(value: str) -> int:
    return len(value.encode("utf-8"))


class MemoryBackend:
    """In-process backend. Used by tests and as a throwaway cache."""

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self.quota_bytes = quota_bytes
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(_size(v) for k, v in self._items.items() if k != key)
            if used + _size(value) > self.quota_bytes:
                raise StorageQuotaError(
                    f"quota of {self.quota_bytes} bytes exceeded writing {key!r}"
                )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._items)


class FileBackend:
    """One file per key under `directory`. Survives process restarts."""

    SUFFIX = ".json"

    def __init__(self, directory: str, quota_bytes: Optional[int] = None) -> None:
        self.directory = Path(directory)
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        return self.directory / (quote(key, safe="") + self.SUFFIX)

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)

        if self.quota_bytes is not None:
            used = sum(
                p.stat().st_size
                for p in self.directory.glob("*" + self.SUFFIX)
                if p != path
            )
            if used + _size(value) > self.quota_bytes:
                raise StorageQuotaError(
                    f"quota of {self.quota_bytes} bytes exceeded writing {key!r}"
                )

        # Write-then-rename so a reader never sees half a file.
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    def keys(self) -> List[str]:
        if not self.directory.exists():
            return []
        return [
            unquote(p.name[: -len(self.SUFFIX)])
            for p in self.directory.glob("*" + self.SUFFIX)
        ]

# cache/store.py
import hashlib
import json
import pathlib
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from ..utils.logger import get_logger

log = get_logger("CacheStore")


class KeyValueStore(Protocol):
    """get / put-with-expiry; a missing or expired key reads as None."""

    def get(self, key: str) -> Optional[Any]: ...

    def put(self, key: str, value: Any, ttl_seconds: float) -> None: ...


class MemoryStore:
    """Process-local store, mainly for tests and the HTTP API."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._data: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self.clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._data[key] = (self.clock() + ttl_seconds, value)


class FileStore:
    """One JSON document per key under `cache_dir`."""

    def __init__(self, cache_dir: pathlib.Path, clock: Callable[[], float] = time.time):
        self.cache_dir = pathlib.Path(cache_dir)
        self.clock = clock

    def _path(self, key: str) -> pathlib.Path:
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{digest}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            entry = json.load(f)
        if self.clock() >= entry.get("expires_at", 0):
            log.info(f"Cache entry {key} expired")
            path.unlink(missing_ok=True)
            return None
        return entry.get("value")

    def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        entry = {"key": key, "expires_at": self.clock() + ttl_seconds, "value": value}
        tmp_path = self._path(key).with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(entry, f)
        tmp_path.replace(self._path(key))

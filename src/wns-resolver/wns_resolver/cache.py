import json
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol

logger = logging.getLogger(__name__)

CACHE_PREFIX = "wns_"


class KeyValueStore(Protocol):
    def get(self, keys: Iterable[str]) -> Dict[str, Any]: ...

    def set(self, items: Mapping[str, Any]) -> None: ...

    def remove(self, keys: Iterable[str]) -> None: ...

    def get_all(self) -> Dict[str, Any]: ...


class MemoryStore:
    """Simple in-memory key-value store."""

    def __init__(self) -> None:
        self._memory: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        with self._lock:
            return {key: self._memory[key] for key in keys if key in self._memory}

    def set(self, items: Mapping[str, Any]) -> None:
        with self._lock:
            self._memory.update(items)

    def remove(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._memory.pop(key, None)

    def get_all(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._memory)


class JsonFileStore:
    """Key-value store persisted as one JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Failed to read cache file %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data), encoding="utf-8")

    def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        with self._lock:
            data = self._load()
        return {key: data[key] for key in keys if key in data}

    def set(self, items: Mapping[str, Any]) -> None:
        with self._lock:
            data = self._load()
            data.update(items)
            self._dump(data)

    def remove(self, keys: Iterable[str]) -> None:
        with self._lock:
            data = self._load()
            for key in keys:
                data.pop(key, None)
            self._dump(data)

    def get_all(self) -> Dict[str, Any]:
        with self._lock:
            return self._load()


@dataclass(frozen=True)
class CacheEntry:
    name: Optional[str]
    timestamp: float

    def is_fresh(self, ttl_seconds: float, now: Optional[float] = None) -> bool:
        current = time.time() if now is None else now
        return (current - self.timestamp) < ttl_seconds


def _entry_from_value(value: Any) -> Optional[CacheEntry]:
    if not isinstance(value, dict):
        return None
    name = value.get("n")
    timestamp = value.get("t")
    if name is not None and not isinstance(name, str):
        return None
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        return None
    return CacheEntry(name=name or None, timestamp=float(timestamp))


class ResolutionCache:
    """
    Address -> name cache over a key-value store.

    A ``None`` name is a negative entry: the address was looked up and has no
    name. Freshness is checked by the reader; nothing is evicted here.
    """

    def __init__(self, store: KeyValueStore, prefix: str = CACHE_PREFIX) -> None:
        self.store = store
        self.prefix = prefix

    def _key(self, address: str) -> str:
        return f"{self.prefix}{address.lower()}"

    def get(self, address: str) -> Optional[CacheEntry]:
        key = self._key(address)
        return _entry_from_value(self.store.get([key]).get(key))

    def get_many(self, addresses: Iterable[str]) -> Dict[str, CacheEntry]:
        keys = {self._key(address): address.lower() for address in addresses}
        stored = self.store.get(list(keys))
        out: Dict[str, CacheEntry] = {}
        for key, address in keys.items():
            entry = _entry_from_value(stored.get(key))
            if entry is not None:
                out[address] = entry
        return out

    def set(self, address: str, name: Optional[str], timestamp: Optional[float] = None) -> None:
        self.set_many({address: name}, timestamp)

    def set_many(self, names: Mapping[str, Optional[str]], timestamp: Optional[float] = None) -> None:
        now = time.time() if timestamp is None else timestamp
        self.store.set({self._key(address): {"n": name, "t": now} for address, name in names.items()})

    def clear(self) -> int:
        keys = [key for key in self.store.get_all() if key.startswith(self.prefix)]
        self.store.remove(keys)
        logger.info("cache cleared: %d entries", len(keys))
        return len(keys)

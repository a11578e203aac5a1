"""
Request Cache: content-addressed reuse of expensive results.

Keys are derived from a normalized description of the request (tool name and
canonicalized arguments, or model and prompt), so semantically identical
requests map to the same entry. Values are stored as JSON and come back
deserialized; values that would not survive that round trip unchanged are
rejected on write.

The cache gives read-through reuse only. Two concurrent misses for the same
key both execute and the later write wins.
"""

import hashlib
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, Optional

from ..models.contracts import CacheEntry
from ..models.enums import CacheBackendType

logger = logging.getLogger(__name__)


class _Miss:
    """Sentinel type for cache misses (``None`` is a legitimate cached value)."""

    _instance: Optional["_Miss"] = None

    def __new__(cls) -> "_Miss":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "CACHE_MISS"


CACHE_MISS = _Miss()


def _canonicalize(value: Any) -> Any:
    """Recursively sort mappings and drop None-valued keys."""
    if isinstance(value, dict):
        return {
            str(k): _canonicalize(v)
            for k, v in sorted(value.items(), key=lambda item: str(item[0]))
            if v is not None
        }
    if isinstance(value, (list, tuple)):
        return [_canonicalize(v) for v in value]
    return value


def describe_request(kind: str, name: str, payload: Any = None) -> Dict[str, Any]:
    """
    Build the normalized description of a request.

    Args:
        kind: "tool" for tool invocations, "model" for LLM prompts
        name: Tool name or model identifier
        payload: Tool arguments, or the prompt (string or message list)

    Returns:
        Canonical description suitable for ``build_cache_key``
    """
    if kind == "tool":
        return {"kind": "tool", "tool": name, "args": _canonicalize(payload or {})}
    if kind == "model":
        prompt = payload.strip() if isinstance(payload, str) else _canonicalize(payload)
        return {"kind": "model", "model": name, "prompt": prompt}
    raise ValueError(f"Unknown request kind: {kind}")


def build_cache_key(description: Dict[str, Any]) -> str:
    """
    Derive a deterministic key from a request description.

    Args:
        description: Output of ``describe_request`` (or any JSON-compatible dict)

    Returns:
        SHA-256 hex digest of the canonical JSON form
    """
    canonical = json.dumps(
        _canonicalize(description), sort_keys=True, separators=(",", ":"), default=str
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _serialize(entry: CacheEntry) -> str:
    return json.dumps({"key": entry.key, "value": entry.value, "stored_at": entry.stored_at})


def _deserialize(data: str | bytes) -> CacheEntry:
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    return CacheEntry(**json.loads(data))


class CacheBackend(ABC):
    """Abstract base class for cache storage media."""

    @abstractmethod
    def get(self, key: str) -> Optional[CacheEntry]:
        """Get an entry, or None if absent."""
        pass

    @abstractmethod
    def set(self, entry: CacheEntry) -> None:
        """Store an entry, replacing any previous one for its key."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete an entry."""
        pass

    @abstractmethod
    def clear(self) -> int:
        """Remove all entries and return how many were removed."""
        pass

    @abstractmethod
    def stats(self) -> Dict[str, Any]:
        """Get backend statistics."""
        pass


class InMemoryCacheBackend(CacheBackend):
    """
    In-memory LRU store.

    Entries are kept in serialized form so callers can never mutate what is
    cached through a returned value.

    Example:
        backend = InMemoryCacheBackend(max_size=1000)
    """

    def __init__(self, max_size: int = 1000):
        """
        Initialize the LRU store.

        Args:
            max_size: Maximum number of entries kept
        """
        self._lock = threading.Lock()
        self._cache: OrderedDict[str, str] = OrderedDict()
        self._max_size = max_size

        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            data = self._cache.get(key)
            if data is None:
                self._misses += 1
                return None
            # Move to end (most recently used)
            self._cache.move_to_end(key)
            self._hits += 1
        return _deserialize(data)

    def set(self, entry: CacheEntry) -> None:
        data = _serialize(entry)
        with self._lock:
            self._cache[entry.key] = data
            self._cache.move_to_end(entry.key)

            if len(self._cache) > self._max_size:
                oldest_key, _ = self._cache.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted oldest cache entry: {oldest_key[:16]}...")

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> int:
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total_requests = self._hits + self._misses
            return {
                "backend": CacheBackendType.MEMORY.value,
                "size": len(self._cache),
                "max_size": self._max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": (self._hits / total_requests) if total_requests > 0 else 0.0,
                "evictions": self._evictions,
            }


class DiskCacheBackend(CacheBackend):
    """
    On-disk store with one JSON document per key.

    Writes go through a temp file and an atomic rename. Unreadable files are
    treated as misses and removed.
    """

    def __init__(self, cache_dir: Path | str):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def get(self, key: str) -> Optional[CacheEntry]:
        path = self._path(key)
        try:
            entry = _deserialize(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            entry = None
        except (OSError, ValueError, TypeError) as e:
            logger.warning(f"Discarding unreadable cache file {path.name}: {e}")
            path.unlink(missing_ok=True)
            entry = None

        with self._lock:
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
        return entry

    def set(self, entry: CacheEntry) -> None:
        path = self._path(entry.key)
        temp_file = path.with_name(f"{path.name}.{threading.get_ident()}.tmp")
        temp_file.write_text(_serialize(entry), encoding="utf-8")
        temp_file.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def clear(self) -> int:
        count = 0
        for path in self.cache_dir.glob("*.json"):
            path.unlink(missing_ok=True)
            count += 1
        logger.info(f"Cleared {count} cache files from {self.cache_dir}")
        return count

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total_requests = self._hits + self._misses
            return {
                "backend": CacheBackendType.DISK.value,
                "directory": str(self.cache_dir),
                "size": sum(1 for _ in self.cache_dir.glob("*.json")),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": (self._hits / total_requests) if total_requests > 0 else 0.0,
            }


class RedisCacheBackend(CacheBackend):
    """
    Redis-backed store shared across processes.

    Example:
        backend = RedisCacheBackend(host="localhost", port=6379)
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        key_prefix: str = "agentloop:cache:",
        client: Any = None,
    ):
        """
        Initialize the Redis store.

        Args:
            host: Redis host
            port: Redis port
            db: Redis database number
            password: Redis password (if required)
            key_prefix: Prefix for all cache keys
            client: Pre-built redis client (skips connection setup)
        """
        if client is None:
            try:
                import redis
            except ImportError:
                raise ImportError(
                    "Redis support requires the 'redis' package. "
                    "Install with: pip install 'agentloop[redis]'"
                )
            client = redis.Redis(host=host, port=port, db=db, password=password)
            client.ping()
            logger.info(f"Connected to Redis at {host}:{port}")

        self._redis = client
        self._key_prefix = key_prefix

    def _make_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def get(self, key: str) -> Optional[CacheEntry]:
        data = self._redis.get(self._make_key(key))
        if data is None:
            return None
        try:
            return _deserialize(data)
        except (ValueError, TypeError) as e:
            logger.warning(f"Discarding unreadable Redis cache entry {key[:16]}...: {e}")
            self.delete(key)
            return None

    def set(self, entry: CacheEntry) -> None:
        self._redis.set(self._make_key(entry.key), _serialize(entry).encode("utf-8"))

    def delete(self, key: str) -> None:
        self._redis.delete(self._make_key(key))

    def clear(self) -> int:
        # SCAN avoids blocking the server the way KEYS would
        keys = list(self._redis.scan_iter(f"{self._key_prefix}*"))
        if keys:
            self._redis.delete(*keys)
        logger.info(f"Cleared {len(keys)} Redis cache entries")
        return len(keys)

    def stats(self) -> Dict[str, Any]:
        info = self._redis.info("stats")
        return {
            "backend": CacheBackendType.REDIS.value,
            "size": sum(1 for _ in self._redis.scan_iter(f"{self._key_prefix}*")),
            "keyspace_hits": info.get("keyspace_hits", 0),
            "keyspace_misses": info.get("keyspace_misses", 0),
        }


class RequestCache:
    """
    Read-through cache facade used by the dispatcher.

    Example:
        cache = RequestCache(InMemoryCacheBackend())
        key = build_cache_key(describe_request("tool", "search", {"q": "acme"}))
        value = cache.read_cache(key)
        if value is CACHE_MISS:
            value = run_search()
            cache.write_cache(key, value)
    """

    def __init__(self, backend: CacheBackend | None = None):
        self.backend = backend or InMemoryCacheBackend()

    def read_cache(self, key: str, ttl_seconds: Optional[float] = None) -> Any:
        """
        Look up a value.

        Args:
            key: Cache key from ``build_cache_key``
            ttl_seconds: Optional maximum age; older entries count as misses

        Returns:
            The stored value, or ``CACHE_MISS``
        """
        entry = self.backend.get(key)
        if entry is None:
            return CACHE_MISS

        if ttl_seconds is not None and time.time() - entry.stored_at > ttl_seconds:
            logger.debug(f"Cache entry expired for key: {key[:16]}...")
            return CACHE_MISS

        logger.debug(f"Cache hit for key: {key[:16]}...")
        return entry.value

    def write_cache(self, key: str, value: Any) -> None:
        """
        Store a value, overwriting any previous entry (last write wins).

        Only values that survive a JSON round trip unchanged are accepted, so
        a later read always equals what was written. Tuples and non-string
        dict keys are rejected because they would come back as lists and
        string keys.

        Raises:
            TypeError: If the value is not JSON-serializable or does not
                round-trip exactly
        """
        try:
            restored = json.loads(json.dumps(value))
        except (TypeError, ValueError) as e:
            raise TypeError(f"Cache values must be JSON-serializable: {e}") from e
        if restored != value:
            raise TypeError(
                f"Cache value of type {type(value).__name__} does not round-trip through JSON"
            )

        self.backend.set(CacheEntry(key=key, value=value, stored_at=time.time()))
        logger.debug(f"Cached value for key: {key[:16]}...")

    def delete(self, key: str) -> None:
        self.backend.delete(key)

    def clear(self) -> int:
        return self.backend.clear()

    def stats(self) -> Dict[str, Any]:
        return self.backend.stats()


class CacheConfig:
    """Configuration for cache backend selection."""

    def __init__(
        self,
        backend: CacheBackendType | str = CacheBackendType.MEMORY,
        max_size: int = 1000,
        cache_dir: Path | str = Path(".agentloop/cache"),
        redis_host: str = "localhost",
        redis_port: int = 6379,
        redis_db: int = 0,
        redis_password: Optional[str] = None,
    ):
        """
        Initialize cache configuration.

        Args:
            backend: "memory", "disk" or "redis"
            max_size: Max entries for the in-memory backend
            cache_dir: Directory for the disk backend
            redis_host: Redis host
            redis_port: Redis port
            redis_db: Redis database number
            redis_password: Redis password
        """
        self.backend = CacheBackendType(backend)
        self.max_size = max_size
        self.cache_dir = Path(cache_dir)
        self.redis_host = redis_host
        self.redis_port = redis_port
        self.redis_db = redis_db
        self.redis_password = redis_password

    @classmethod
    def from_agent_config(cls, config) -> "CacheConfig":
        return cls(
            backend=config.cache_backend,
            max_size=config.cache_max_size,
            cache_dir=config.cache_dir,
            redis_host=config.redis_host,
            redis_port=config.redis_port,
            redis_db=config.redis_db,
            redis_password=config.redis_password,
        )

    def create_backend(self) -> CacheBackend:
        """
        Create a cache backend based on configuration.

        Returns:
            CacheBackend instance
        """
        if self.backend == CacheBackendType.MEMORY:
            logger.info(f"Using in-memory LRU cache (max_size={self.max_size})")
            return InMemoryCacheBackend(max_size=self.max_size)
        if self.backend == CacheBackendType.DISK:
            logger.info(f"Using on-disk cache at {self.cache_dir}")
            return DiskCacheBackend(self.cache_dir)
        logger.info(f"Using Redis cache at {self.redis_host}:{self.redis_port}")
        return RedisCacheBackend(
            host=self.redis_host,
            port=self.redis_port,
            db=self.redis_db,
            password=self.redis_password,
        )

    def create_cache(self) -> RequestCache:
        return RequestCache(self.create_backend())

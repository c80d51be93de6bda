"""
Persistence adapters for Mock Studio.
Durable key/value blob storage with memory, JSON-file and Redis backends.
"""
from mockstudio.storage.kv_store import (
    KeyValueStore, MemoryStore, JsonFileStore,
    StorageError, StorageReadError, StorageWriteError,
)
from mockstudio.storage.redis_store import RedisStore


def build_kv_store(settings) -> KeyValueStore:
    """Create the key/value backend selected by settings.storage_backend."""
    backend = settings.storage_backend
    if backend == "memory":
        return MemoryStore()
    if backend == "redis":
        store = RedisStore(settings.redis_url, namespace=settings.redis_namespace)
        store.connect()
        return store
    return JsonFileStore(settings.storage_path)


__all__ = [
    "KeyValueStore", "MemoryStore", "JsonFileStore", "RedisStore",
    "StorageError", "StorageReadError", "StorageWriteError",
    "build_kv_store",
]

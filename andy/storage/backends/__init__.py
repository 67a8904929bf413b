"""
Document store factory.

Usage:
    from andy.storage.backends import make_store
    store = make_store("sqlite", db_path="./data/andy.db")

Adding a new backend:
    1. Create andy/storage/backends/<name>.py implementing DocumentStore.
    2. Add an entry to _REGISTRY below.
    3. Set  storage.backend: <name>  in config.yaml.
"""

from .base import DocumentStore

_REGISTRY: dict[str, type[DocumentStore]] = {}


def _register():
    """Lazy-import backends so importing the package stays cheap."""
    global _REGISTRY
    if _REGISTRY:
        return
    from .memory import MemoryStore
    from .sqlite import SQLiteStore
    _REGISTRY["memory"] = MemoryStore
    _REGISTRY["sqlite"] = SQLiteStore


def make_store(backend_type: str, **kwargs) -> DocumentStore:
    """
    Instantiate a document store by name.

    Raises:
        ValueError: If the backend type is not registered.
    """
    _register()
    cls = _REGISTRY.get(backend_type)
    if cls is None:
        available = ", ".join(_REGISTRY.keys())
        raise ValueError(
            f"Unknown storage backend: '{backend_type}'. "
            f"Available: {available}"
        )
    return cls(**kwargs)


def store_from_config(cfg: dict) -> DocumentStore:
    storage = cfg.get("storage", {})
    backend = storage.get("backend", "memory")
    if backend == "sqlite":
        return make_store("sqlite", db_path=storage.get("sqlite_path", "./data/andy.db"))
    return make_store(backend)


__all__ = ["DocumentStore", "make_store", "store_from_config"]

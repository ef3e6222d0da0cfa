"""
Key store: service plus pluggable durable backends.
"""

from .base import VERSION_MARKER, BaseStoreBackend, Record, StoreBackend
from .factory import build_store_backend
from .fs import FSStoreBackend
from .memory import MemoryStoreBackend
from .service import KeyStore, merge_values

__all__ = [
    "VERSION_MARKER",
    "Record",
    "StoreBackend",
    "BaseStoreBackend",
    "MemoryStoreBackend",
    "FSStoreBackend",
    "build_store_backend",
    "KeyStore",
    "merge_values",
]

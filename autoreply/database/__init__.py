"""Key-value storage and database models."""

from autoreply.database.base import InMemoryKeyValueStore, KeyValueStore
from autoreply.database.kv_store import SqlKeyValueStore
from autoreply.database.models import Base, KeyValueRecordDB

__all__ = [
    "Base",
    "InMemoryKeyValueStore",
    "KeyValueRecordDB",
    "KeyValueStore",
    "SqlKeyValueStore",
]

"""Key-value storage interface backing the rule store and hand-off flags."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Generic keyed record store."""

    async def get(self, key: str) -> bytes | None:
        """Return the stored value, or None if the key is absent."""
        ...

    async def put(self, key: str, value: bytes) -> None:
        """Store or replace the value for a key."""
        ...

    async def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        ...


class InMemoryKeyValueStore:
    """Process-local store for tests and single-instance deployments."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    async def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    async def put(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data.keys())

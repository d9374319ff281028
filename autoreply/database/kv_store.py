"""Key-value store over the kv_records table."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from autoreply.database.models import KeyValueRecordDB

logger = logging.getLogger(__name__)


class SqlKeyValueStore:
    """KeyValueStore implementation backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize with a session factory.

        Args:
            session_factory: Factory producing AsyncSession instances
        """
        self.session_factory = session_factory

    async def get(self, key: str) -> bytes | None:
        async with self.session_factory() as db:
            record = await db.get(KeyValueRecordDB, key)
            if record is None:
                return None
            return record.value

    async def put(self, key: str, value: bytes) -> None:
        async with self.session_factory() as db:
            record = await db.get(KeyValueRecordDB, key)
            if record is None:
                db.add(KeyValueRecordDB(key=key, value=value))
            else:
                record.value = value
            await db.commit()

    async def delete(self, key: str) -> None:
        async with self.session_factory() as db:
            record = await db.get(KeyValueRecordDB, key)
            if record is None:
                logger.debug(f"Delete of missing key {key} ignored")
                return
            await db.delete(record)
            await db.commit()

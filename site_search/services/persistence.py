"""
Key/value persistence port used by the engine for history and saved searches.

The engine does not assume a storage medium; any object with async
``load``/``save`` methods will do.
"""
import logging
from typing import Dict, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from site_search.core.exceptions import PersistenceError
from site_search.models.store import StoredValue

logger = logging.getLogger(__name__)


class PersistencePort(Protocol):
    async def load(self, key: str) -> Optional[bytes]:
        ...

    async def save(self, key: str, data: bytes) -> None:
        ...


class InMemoryPersistence:
    """Process-local store; contents vanish with the process."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self.data: Dict[str, bytes] = dict(initial or {})

    async def load(self, key: str) -> Optional[bytes]:
        return self.data.get(key)

    async def save(self, key: str, data: bytes) -> None:
        self.data[key] = data


class DatabasePersistence:
    """Stores each key as a row in the ``search_store`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def load(self, key: str) -> Optional[bytes]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(StoredValue).where(StoredValue.key == key))
                row = result.scalar_one_or_none()
                return row.value if row is not None else None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load {key!r}: {e}") from e

    async def save(self, key: str, data: bytes) -> None:
        try:
            async with self.session_factory() as session:
                row = await session.get(StoredValue, key)
                if row is None:
                    session.add(StoredValue(key=key, value=data))
                else:
                    row.value = data
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save {key!r}: {e}") from e

"""Key-value store port and its in-memory and SQL implementations.

The store is a synchronous key -> string map with a setItem/getItem/removeItem
contract. A write that would push the total size of stored keys and values
past the configured quota raises LocalQuotaExceeded and leaves the previous
value untouched.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy import create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shared.config import get_local_quota_bytes, get_local_store_url
from shared.db_models import Base, KeyValueEntry
from shared.errors import LocalQuotaExceeded, LocalWriteFailure

logger = logging.getLogger(__name__)


def entry_size(key: str, value: str) -> int:
    """Size in bytes that one entry occupies in the store."""
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class KeyValueStore(ABC):
    """Synchronous string key-value store."""

    quota_bytes: Optional[int] = None

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string or None."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Replace the value under key. Raises LocalQuotaExceeded when full."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove key if present."""

    @abstractmethod
    def items(self) -> Iterator[Tuple[str, str]]:
        """Iterate over all (key, value) pairs."""

    def keys(self) -> List[str]:
        return [key for key, _ in self.items()]

    def used_bytes(self) -> int:
        return sum(entry_size(key, value) for key, value in self.items())

    def _check_quota(self, key: str, value: str, current_value: Optional[str]) -> None:
        if self.quota_bytes is None:
            return
        used = self.used_bytes()
        if current_value is not None:
            used -= entry_size(key, current_value)
        if used + entry_size(key, value) > self.quota_bytes:
            raise LocalQuotaExceeded()


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store, used for headless sessions and tests."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_quota(key, value, self._data.get(key))
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(list(self._data.items()))


class SqlKeyValueStore(KeyValueStore):
    """Handles all key-value operations against a SQL database."""

    def __init__(self, database_url: Optional[str] = None, quota_bytes: Optional[int] = None):
        """
        Initialize database connection.

        Args:
            database_url: SQLAlchemy URL. Defaults to LOCAL_STORE_URL.
            quota_bytes: Optional total size limit for keys and values
        """
        self.database_url = database_url or get_local_store_url()
        self.quota_bytes = quota_bytes

        engine_kwargs = {"pool_pre_ping": True}
        if self.database_url.startswith("sqlite") and ":memory:" in self.database_url:
            # One shared connection, otherwise every thread sees an empty database
            engine_kwargs = {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        self.engine = create_engine(self.database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @classmethod
    def for_local_storage(cls) -> "SqlKeyValueStore":
        """Build the local persistent store from environment configuration."""
        store = cls(get_local_store_url(), quota_bytes=get_local_quota_bytes())
        store.create_tables()
        return store

    def create_tables(self):
        """Create all tables in the database."""
        Base.metadata.create_all(bind=self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def get_item(self, key: str) -> Optional[str]:
        with self.get_session() as session:
            entry = session.get(KeyValueEntry, key)
            return entry.value if entry else None

    def set_item(self, key: str, value: str) -> None:
        with self.get_session() as session:
            try:
                entry = session.get(KeyValueEntry, key)
                self._check_quota(key, value, entry.value if entry else None)

                if entry:
                    entry.value = value
                else:
                    session.add(KeyValueEntry(key=key, value=value))
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Failed to write key {key}: {e}", exc_info=True)
                raise LocalWriteFailure(f"Failed to write key {key}: {e}") from e

    def remove_item(self, key: str) -> None:
        with self.get_session() as session:
            session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
            session.commit()

    def items(self) -> Iterator[Tuple[str, str]]:
        with self.get_session() as session:
            rows = session.execute(select(KeyValueEntry.key, KeyValueEntry.value)).all()
        return iter([(row.key, row.value) for row in rows])

    def items_with_prefix(self, prefix: str) -> List[Tuple[str, str]]:
        """Get all entries whose key starts with prefix, ordered by key."""
        with self.get_session() as session:
            stmt = (
                select(KeyValueEntry.key, KeyValueEntry.value)
                .where(KeyValueEntry.key.startswith(prefix, autoescape=True))
                .order_by(KeyValueEntry.key)
            )
            return [(row.key, row.value) for row in session.execute(stmt).all()]

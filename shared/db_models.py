"""SQLAlchemy database models for the key-value stores."""

from sqlalchemy import Column, String, Text, DateTime, Index
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func


Base = declarative_base()


class KeyValueEntry(Base):
    """Model for kv_entries table.

    Backs both the local persistent store and the remote KV server; each
    uses its own database.
    """
    __tablename__ = 'kv_entries'

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('idx_kv_entries_created', 'created_at'),
    )

"""
StoredCollection — one persisted unit per collection name.

payload holds the whole collection as a JSON array of objects, in insertion
order. Every write replaces the payload and bumps revision.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class StoredCollection(Base):
    __tablename__ = "collections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    payload: Mapped[str] = mapped_column(
        Text, nullable=False, default="[]",
        comment="JSON-encoded array of record objects",
    )
    record_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    revision: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
        comment="Incremented on every full rewrite of payload",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=func.now()
    )

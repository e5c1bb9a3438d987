"""
SQLAlchemy models for the auth worker: users keyed by opaque id, and the key-value store.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_user_id() -> str:
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    # Opaque and stable; only ever written by identity.resolve_user_id
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_user_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now)


class KeyValue(Base):
    """Backing table for DatabaseStorage (pending flows, authorization codes)."""
    __tablename__ = "kv_store"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)  # JSON
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

"""Tests for identity resolution: create-or-fetch by email, exactly once."""
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import sessionmaker

from auth_worker.database import SessionLocal
from auth_worker.errors import IdentityResolutionError
from auth_worker.identity import IdentityResolver, _upsert_user_statement, resolve_user_id
from auth_worker.models import Base, User


def _count(db, email):
    return db.execute(select(func.count()).select_from(User).where(User.email == email)).scalar_one()


def test_first_sight_creates_user(clean_db):
    with SessionLocal() as db:
        user_id = resolve_user_id(db, "alice@example.com")
        assert user_id
        assert db.get(User, user_id).email == "alice@example.com"


def test_resolve_is_idempotent(clean_db):
    with SessionLocal() as db:
        first = resolve_user_id(db, "alice@example.com")
        second = resolve_user_id(db, "alice@example.com")
        assert first == second
        assert _count(db, "alice@example.com") == 1


def test_distinct_emails_get_distinct_ids(clean_db):
    with SessionLocal() as db:
        assert resolve_user_id(db, "alice@example.com") != resolve_user_id(db, "bob@example.com")


def test_existing_row_left_unchanged(clean_db):
    with SessionLocal() as db:
        db.add(User(id="existing-id", email="carol@example.com"))
        db.commit()
        assert resolve_user_id(db, "carol@example.com") == "existing-id"
        assert _count(db, "carol@example.com") == 1


def test_empty_email_rejected(clean_db):
    with SessionLocal() as db:
        with pytest.raises(ValueError):
            resolve_user_id(db, "")


def test_no_row_returned_is_fatal(clean_db):
    with SessionLocal() as db:
        empty = MagicMock()
        empty.scalar_one_or_none.return_value = None
        with patch.object(db, "execute", return_value=empty):
            with pytest.raises(IdentityResolutionError) as exc_info:
                resolve_user_id(db, "dave@example.com")
        assert exc_info.value.email == "dave@example.com"
        assert _count(db, "dave@example.com") == 0


def test_unsupported_dialect_has_no_fallback():
    db = MagicMock()
    db.get_bind.return_value.dialect.name = "mysql"
    with pytest.raises(RuntimeError):
        resolve_user_id(db, "erin@example.com")
    db.execute.assert_not_called()


def test_postgresql_statement_is_single_upsert():
    sql = str(_upsert_user_statement("postgresql", "a@example.com").compile(dialect=postgresql.dialect()))
    assert "INSERT INTO users" in sql
    assert "ON CONFLICT (email) DO UPDATE" in sql
    assert "RETURNING users.id" in sql


def test_resolver_wraps_user_subject(clean_db):
    subject = IdentityResolver(SessionLocal).resolve_identity("alice@example.com")
    assert subject.type == "user"
    with SessionLocal() as db:
        assert db.get(User, subject.properties["id"]).email == "alice@example.com"
    assert IdentityResolver(SessionLocal).resolve_identity("alice@example.com") == subject


def test_concurrent_first_logins_create_one_user(tmp_path):
    """N simultaneous first-time resolutions for one email: one row, one id."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'users.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine)
    resolver = IdentityResolver(factory)
    n = 8
    barrier = threading.Barrier(n)

    def login():
        barrier.wait()
        return resolver.resolve_identity("new@example.com").properties["id"]

    with ThreadPoolExecutor(max_workers=n) as pool:
        ids = list(pool.map(lambda _: login(), range(n)))

    assert len(set(ids)) == 1
    with factory() as db:
        assert _count(db, "new@example.com") == 1
        assert db.execute(select(User.id)).scalar_one() == ids[0]
    engine.dispose()

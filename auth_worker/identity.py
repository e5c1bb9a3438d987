"""
Identity resolution: verified email -> stable user id, created on first sight.

The users table has a single write path, resolve_user_id, which is one atomic
INSERT ... ON CONFLICT (email) DO UPDATE ... RETURNING id statement. Concurrent first
logins for the same email therefore agree on one row; there is no read-then-write window.
"""
import logging
from typing import Callable

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from auth_worker.errors import IdentityResolutionError
from auth_worker.models import User, new_user_id
from auth_worker.subjects import Subject, user_subject

logger = logging.getLogger(__name__)

# Dialects whose insert() supports on_conflict_do_update(...).returning(...)
_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def _upsert_user_statement(dialect_name: str, email: str):
    insert = _UPSERT_INSERTS.get(dialect_name)
    if insert is None:
        raise RuntimeError(f"Database dialect {dialect_name!r} has no atomic upsert; cannot resolve identities")
    users = User.__table__
    stmt = insert(users).values(id=new_user_id(), email=email)
    # No-op touch on conflict so RETURNING yields the existing row (DO NOTHING returns nothing)
    return stmt.on_conflict_do_update(
        index_elements=[users.c.email],
        set_={"email": stmt.excluded.email},
    ).returning(users.c.id)


def resolve_user_id(db: Session, email: str) -> str:
    """
    Create the user for email if absent and return its id; existing rows are left unchanged.
    Raises IdentityResolutionError if the upsert returns no row. Commits on success.
    """
    if not email:
        raise ValueError("email is required")
    stmt = _upsert_user_statement(db.get_bind().dialect.name, email)
    try:
        user_id = db.execute(stmt).scalar_one_or_none()
        if user_id is None:
            raise IdentityResolutionError(email)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Found or created user %s with email %s", user_id, email)
    return user_id


class IdentityResolver:
    """Success hook for the issuer: verified email -> user subject."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def resolve_identity(self, email: str) -> Subject:
        with self._session_factory() as db:
            return user_subject(resolve_user_id(db, email))

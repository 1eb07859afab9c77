"""Dialect-aware INSERT construct for upserts."""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(db: AsyncSession, entity):
    """
    Return an INSERT for ``entity`` that supports ON CONFLICT clauses.

    PostgreSQL serves production; SQLite backs the test suite. Both expose
    ``on_conflict_do_update``/``on_conflict_do_nothing`` with ``excluded``.
    """
    dialect_name = db.get_bind().dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert(entity)
    if dialect_name == "sqlite":
        return sqlite.insert(entity)
    raise NotImplementedError(f"Upserts are not supported on {dialect_name}")

"""Dialect-specific INSERT ... ON CONFLICT statements.

The engine's idempotence relies on conflict-ignoring inserts. PostgreSQL and
SQLite spell these the same way in SQLAlchemy but through different
``insert`` constructs; this picks the right one for the session's bind.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def dialect_insert(session: AsyncSession, table: Any) -> Any:
    """Return an ``insert()`` for ``table`` that supports ``on_conflict_*``."""
    dialect = session.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        msg = f"Idempotent upserts are not supported on dialect {dialect!r}"
        raise ValueError(msg) from None
    return insert(table)

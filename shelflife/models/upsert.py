"""
Native insert-or-update keyed by a unique constraint.
SQLite and PostgreSQL share the ON CONFLICT DO UPDATE syntax; this picks the
right dialect construct for the session's bind.
"""

from typing import Any, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(session: AsyncSession, model):
    """Return a dialect-specific INSERT that supports on_conflict_do_update."""
    if session.get_bind().dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


async def upsert(
    session: AsyncSession,
    model,
    keys: dict[str, Any],
    values: dict[str, Any],
    update: Optional[dict[str, Any]] = None,
) -> None:
    """
    Insert keys+values, or update the row matching `keys`.

    `update` defaults to `values`; pass a narrower dict to leave other columns
    untouched on conflict.
    """
    stmt = dialect_insert(session, model).values(**keys, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(keys.keys()),
        set_=update if update is not None else values,
    )
    await session.execute(stmt)

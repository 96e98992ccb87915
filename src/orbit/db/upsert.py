"""Dialect-aware INSERT ... ON CONFLICT builders."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(db: AsyncSession, model: Any) -> Any:  # noqa: ANN401
    """Return an ``insert()`` construct that supports ``on_conflict_*`` for the session's backend."""
    dialect = db.bind.dialect.name if db.bind is not None else "postgresql"
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    msg = f"Upserts are not supported on dialect {dialect!r}"
    raise RuntimeError(msg)

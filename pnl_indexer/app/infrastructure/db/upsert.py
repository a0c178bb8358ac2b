from __future__ import annotations

from typing import Any, Iterable, Sequence

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncConnection

from pnl_indexer.app.infrastructure.db.db_base import BaseDB


def chunks(seq: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


def build_upsert(
    conn: AsyncConnection,
    model: type[BaseDB],
    *,
    index_elements: Sequence[str],
) -> Any:
    """
    INSERT ... ON CONFLICT (index_elements) DO UPDATE SET <every other column>.

    PostgreSQL in production; SQLite in tests. Both dialects share the
    on_conflict_do_update API.
    """
    if conn.dialect.name == "postgresql":
        stmt = pg_insert(model)
    elif conn.dialect.name == "sqlite":
        stmt = sqlite_insert(model)
    else:
        raise ValueError(f"Unsupported dialect for upsert: {conn.dialect.name!r}")

    update_columns = [
        c.name for c in model.__table__.columns if c.name not in set(index_elements)
    ]
    return stmt.on_conflict_do_update(
        index_elements=list(index_elements),
        set_={name: stmt.excluded[name] for name in update_columns},
    )

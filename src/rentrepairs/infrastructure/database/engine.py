"""Database engine setup for SQLite with WAL mode.

The DB is stored at ``{root}/{data_dir}/{db_name}`` (by default
``.rentrepairs/rentrepairs.db``). SQLAlchemy Core is used rather than the
ORM: aggregates are hydrated explicitly by the repositories.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event, insert, select
from sqlalchemy.engine import Engine

from rentrepairs.infrastructure.database.schema import id_counters, metadata

SEQUENTIAL_PREFIXES: tuple[str, ...] = ("PROP-", "TNT-", "WRK-", "REQ-")


def create_db_engine(db_path: Path | str) -> Engine:
    """Create a SQLite engine with WAL mode and foreign keys enabled.

    ``":memory:"`` gives a private in-memory database (used by tests).
    """
    url = "sqlite://" if str(db_path) == ":memory:" else f"sqlite:///{db_path}"
    engine = create_engine(url, echo=False)

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_database(
    root: Path,
    *,
    data_dir: str = ".rentrepairs",
    db_name: str = "rentrepairs.db",
) -> Engine:
    """Create the data directory, all tables and the id counters.

    Idempotent: safe to call on an existing store.
    """
    store_dir = root / data_dir
    store_dir.mkdir(parents=True, exist_ok=True)

    engine = create_db_engine(store_dir / db_name)
    create_schema(engine)
    return engine


def create_schema(engine: Engine) -> None:
    metadata.create_all(engine)
    _seed_counters(engine)


def _seed_counters(engine: Engine) -> None:
    with engine.begin() as conn:
        for prefix in SEQUENTIAL_PREFIXES:
            row = conn.execute(
                select(id_counters.c.type_prefix).where(id_counters.c.type_prefix == prefix)
            ).first()
            if row is None:
                conn.execute(insert(id_counters).values(type_prefix=prefix, next_value=1))

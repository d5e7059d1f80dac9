"""Sequential identifiers: ``PROP-0001``, ``TNT-0001``, ``WRK-0001``, ``REQ-0001``.

The caller owns the transaction. A rolled-back transaction releases the
claimed number, so ids stay gap-free. Minimum 4 digits, grows past 9999.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select, update

from rentrepairs.infrastructure.database.engine import SEQUENTIAL_PREFIXES
from rentrepairs.infrastructure.database.schema import id_counters

if TYPE_CHECKING:
    from sqlalchemy import Connection


def next_sequential_id(conn: Connection, type_prefix: str) -> str:
    """Claim the next id for *type_prefix* inside the caller's transaction.

    Raises:
        ValueError: If *type_prefix* is not a known sequential prefix.
    """
    if type_prefix not in SEQUENTIAL_PREFIXES:
        msg = (
            f"Unknown sequential type prefix: {type_prefix!r}. "
            f"Expected one of {sorted(SEQUENTIAL_PREFIXES)}"
        )
        raise ValueError(msg)

    current_value: int = conn.execute(
        select(id_counters.c.next_value).where(id_counters.c.type_prefix == type_prefix)
    ).scalar_one()

    conn.execute(
        update(id_counters)
        .where(id_counters.c.type_prefix == type_prefix)
        .values(next_value=current_value + 1)
    )
    return f"{type_prefix}{current_value:04d}"

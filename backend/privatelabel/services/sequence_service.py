# Overview: Service-layer operations for sequence; allocates order numbers from the counters table.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Counter, ORDER_NUMBER_PREFIX

CLIENT_ORDER_COUNTER = "client_order_number"


def next_sequence_value(name: str) -> int:
    """
    Atomically increment the named counter and return the new value.

    The increment is a single UPDATE (row-locked until the surrounding
    transaction commits), so two concurrent callers can never read the same
    value. The first call for a name inserts the row; a concurrent first
    insert loses on the primary key and falls back to the UPDATE path.
    """
    if not name:
        raise ValueError("counter name is required")

    stmt = (
        update(Counter)
        .where(Counter.name == name)
        .values(seq=Counter.seq + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(Counter(name=name, seq=1))
            return 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    return db.session.query(Counter.seq).filter_by(name=name).scalar()


def next_order_number() -> str:
    """Allocate the next client-order number, e.g. "PL-42"."""
    return f"{ORDER_NUMBER_PREFIX}-{next_sequence_value(CLIENT_ORDER_COUNTER)}"

from __future__ import annotations

from ..extensions import db


class Counter(db.Model):
    """
    Named monotonic counter (one row per sequence).

    Incremented with a single UPDATE ... SET seq = seq + 1 so concurrent
    allocators never observe the same value.
    """
    __tablename__ = "counters"

    name = db.Column(db.String(64), primary_key=True)
    seq = db.Column(db.Integer, nullable=False, default=0)

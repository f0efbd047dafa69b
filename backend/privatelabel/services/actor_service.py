# Overview: Service-layer operations for actors; parses and resolves tagged Admin/Rep references.

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from ..extensions import db
from ..models import Admin, Rep
from ..validation import ValidationError

ACTOR_MODELS = {"admin": Admin, "rep": Rep}


@dataclass(frozen=True)
class ActorRef:
    """Tagged reference to whoever performed an action: kind is "admin" or "rep"."""
    kind: str
    id: int

    def to_dict(self) -> dict:
        return {"kind": self.kind, "id": self.id}


def parse_actor(raw) -> Optional[ActorRef]:
    """
    Accepts {"kind": "rep", "id": 3} and returns an ActorRef; None or an
    empty object means "no actor".
    """
    if raw is None or raw == {}:
        return None
    if isinstance(raw, ActorRef):
        return raw
    if not isinstance(raw, dict):
        raise ValidationError("actor must be an object with kind and id", {"field": "actor"})

    kind = raw.get("kind")
    kind = kind.strip().lower() if isinstance(kind, str) else kind
    if kind not in ACTOR_MODELS:
        raise ValidationError("actor kind must be 'admin' or 'rep'", {"field": "actor.kind"})

    actor_id = raw.get("id")
    if isinstance(actor_id, bool) or not isinstance(actor_id, int) or actor_id <= 0:
        raise ValidationError("actor id must be a positive integer", {"field": "actor.id"})
    return ActorRef(kind=kind, id=actor_id)


def resolve_actor(ref: Optional[ActorRef]) -> Optional[dict]:
    """
    Look up display details for an actor reference.

    Unknown ids resolve to None; callers keep the raw reference.
    """
    if ref is None:
        return None
    model = ACTOR_MODELS.get(ref.kind)
    if model is None:
        return None
    actor = db.session.get(model, ref.id)
    if actor is None:
        return None
    return {"kind": ref.kind, "id": actor.id, "name": actor.name, "email": actor.email}


def resolve_actor_names(refs: Iterable[tuple]) -> dict:
    """
    Batch variant for history display: {(kind, id): name} for every
    (kind, id) pair that resolves.
    """
    wanted: dict[str, set[int]] = {}
    for kind, actor_id in refs:
        if kind in ACTOR_MODELS and actor_id is not None:
            wanted.setdefault(kind, set()).add(actor_id)

    names = {}
    for kind, ids in wanted.items():
        model = ACTOR_MODELS[kind]
        for actor_id, name in db.session.query(model.id, model.name).filter(model.id.in_(ids)):
            names[(kind, actor_id)] = name
    return names

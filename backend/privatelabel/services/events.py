# Overview: In-process domain events published by services and consumed by other services.

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LabelReachedProduction:
    """A label just moved into ready_for_production (from some other stage)."""
    label_id: int
    client_id: int


_subscribers: dict[type, list[Callable]] = defaultdict(list)


def subscribe(event_type: type, handler: Callable) -> None:
    """Register handler for event_type. Registering the same handler twice is a no-op."""
    if handler not in _subscribers[event_type]:
        _subscribers[event_type].append(handler)


def publish(event) -> None:
    """
    Deliver event synchronously to every subscriber, inside the caller's
    transaction. Handler errors propagate so the triggering write rolls back.
    """
    handlers = _subscribers.get(type(event), [])
    logger.debug("Publishing %s to %d handler(s)", type(event).__name__, len(handlers))
    for handler in handlers:
        handler(event)

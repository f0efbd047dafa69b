# Overview: Service-layer operations for the outbox; queues side effects and dispatches them after commit.

"""
Transactional outbox for fire-and-forget side effects.

Services call enqueue() inside the same transaction as the state change
(e.g. order status -> shipped). After commit the task is dispatched by one of:

- after_response: drained once the HTTP response has been sent
- worker:         a separate `flask outbox worker` process polls the table
- manual:         only `flask outbox drain` / the daily job (used by tests)

A handler failure marks the task failed with a backoff; it is retried until
OUTBOX_MAX_ATTEMPTS. The triggering request never sees the failure.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Optional

from flask import current_app, g, has_request_context
from sqlalchemy import update

from ..extensions import db
from ..models import OutboxTask
from ..time_utils import utcnow
from ..validation import UpstreamServiceError

logger = logging.getLogger(__name__)

ORDER_CREATED = "order_created"
PRODUCTION_STARTED = "production_started"
READY_TO_SHIP = "ready_to_ship"
ORDER_SHIPPED = "order_shipped"
GENERATE_RECURRING_ORDER = "generate_recurring_order"
RECURRING_ORDER_REP = "recurring_order_rep"
LABEL_APPROVAL_REQUEST = "label_approval_request"
LABEL_APPROVED_BY_STORE = "label_approved_by_store"

TASK_KINDS = (
    ORDER_CREATED,
    PRODUCTION_STARTED,
    READY_TO_SHIP,
    ORDER_SHIPPED,
    GENERATE_RECURRING_ORDER,
    RECURRING_ORDER_REP,
    LABEL_APPROVAL_REQUEST,
    LABEL_APPROVED_BY_STORE,
)

MAX_BACKOFF = timedelta(hours=1)


def enqueue(kind: str, **payload) -> OutboxTask:
    """
    Add a task to the current session. The caller's commit persists it
    together with the state change that triggered it.
    """
    if kind not in TASK_KINDS:
        raise ValueError(f"Unknown outbox task kind: {kind}")
    task = OutboxTask(kind=kind, payload=payload, status="pending", attempts=0, available_at=utcnow())
    db.session.add(task)
    if has_request_context():
        g.outbox_pending = True
    return task


def _handlers() -> dict[str, Callable]:
    from . import notification_service, recurrence_service

    return {
        ORDER_CREATED: lambda p: notification_service.send_order_created(
            p["order_id"], is_recurring=p.get("is_recurring", False)
        ),
        PRODUCTION_STARTED: lambda p: notification_service.send_production_started(p["order_id"]),
        READY_TO_SHIP: lambda p: notification_service.send_ready_to_ship(p["order_id"]),
        ORDER_SHIPPED: lambda p: notification_service.send_order_shipped(p["order_id"]),
        GENERATE_RECURRING_ORDER: lambda p: recurrence_service.handle_order_shipped(p["order_id"]),
        RECURRING_ORDER_REP: lambda p: notification_service.send_recurring_order_rep(p["order_id"]),
        LABEL_APPROVAL_REQUEST: lambda p: notification_service.send_label_approval_request(p["label_id"]),
        LABEL_APPROVED_BY_STORE: lambda p: notification_service.send_label_approved_by_store(p["label_id"]),
    }


def _backoff(attempts: int) -> timedelta:
    return min(timedelta(minutes=2 ** max(attempts - 1, 0)), MAX_BACKOFF)


class OutboxDispatcher:
    """Claims and runs due outbox tasks one at a time."""

    def __init__(self, *, max_attempts: Optional[int] = None, batch_size: Optional[int] = None):
        config = current_app.config
        self.max_attempts = max_attempts or config.get("OUTBOX_MAX_ATTEMPTS", 5)
        self.batch_size = batch_size or config.get("OUTBOX_BATCH_SIZE", 50)
        self.handlers = _handlers()

    def _claim(self, task_id: int) -> bool:
        """Atomically move one task to processing; False if another worker got it."""
        result = db.session.execute(
            update(OutboxTask)
            .where(
                OutboxTask.id == task_id,
                OutboxTask.status.in_(("pending", "failed")),
            )
            .values(status="processing", attempts=OutboxTask.attempts + 1)
        )
        db.session.commit()
        return bool(result.rowcount)

    def dispatch_pending(self, *, now: Optional[datetime] = None) -> dict:
        """
        Run every due task once. Returns counts of processed, failed and
        skipped (claimed elsewhere) tasks.
        """
        now = now or utcnow()
        due_ids = [
            task_id
            for (task_id,) in db.session.query(OutboxTask.id)
            .filter(
                OutboxTask.status.in_(("pending", "failed")),
                OutboxTask.attempts < self.max_attempts,
                OutboxTask.available_at <= now,
            )
            .order_by(OutboxTask.id)
            .limit(self.batch_size)
        ]

        stats = {"processed": 0, "failed": 0, "skipped": 0}
        for task_id in due_ids:
            if not self._claim(task_id):
                stats["skipped"] += 1
                continue
            task = db.session.get(OutboxTask, task_id)
            if self._run(task, now=now):
                stats["processed"] += 1
            else:
                stats["failed"] += 1

        if due_ids:
            logger.info(
                "Outbox dispatch: %d processed, %d failed, %d skipped",
                stats["processed"], stats["failed"], stats["skipped"],
            )
        return stats

    def _run(self, task: OutboxTask, *, now: datetime) -> bool:
        kind, payload, task_id = task.kind, dict(task.payload or {}), task.id
        handler = self.handlers.get(kind)
        try:
            if handler is None:
                raise ValueError(f"No handler registered for {kind}")
            result = handler(payload)
            if result is False:
                raise UpstreamServiceError(f"{kind} side effect reported failure", {"task_id": task_id})
        except Exception as exc:
            db.session.rollback()
            task = db.session.get(OutboxTask, task_id)
            task.status = "failed"
            task.last_error = f"{type(exc).__name__}: {exc}"[:2000]
            task.available_at = now + _backoff(task.attempts)
            db.session.commit()
            if task.attempts >= self.max_attempts:
                logger.error("Outbox task %s (%s) gave up after %d attempts", task_id, kind, task.attempts)
            else:
                logger.warning("Outbox task %s (%s) failed: %s", task_id, kind, exc)
            return False

        task = db.session.get(OutboxTask, task_id)
        task.status = "done"
        task.last_error = None
        task.processed_at = utcnow()
        db.session.commit()
        return True

    def run_forever(self, *, poll_interval: float = 5.0, stop: Optional[Callable[[], bool]] = None) -> None:
        """Polling loop for the dedicated worker process."""
        logger.info("Outbox worker started (poll every %ss)", poll_interval)
        while not (stop and stop()):
            try:
                stats = self.dispatch_pending()
            except Exception:
                db.session.rollback()
                logger.exception("Outbox worker iteration failed")
                stats = {"processed": 0}
            if not stats.get("processed"):
                time.sleep(poll_interval)


def drain_outbox(*, now: Optional[datetime] = None) -> dict:
    """Dispatch every due task until nothing is left (tasks can enqueue more tasks)."""
    totals = {"processed": 0, "failed": 0, "skipped": 0}
    dispatcher = OutboxDispatcher()
    while True:
        stats = dispatcher.dispatch_pending(now=now)
        for key, value in stats.items():
            totals[key] += value
        if not stats["processed"]:
            return totals


def dispatch_after_response(response):
    """
    after_request hook: when the request queued tasks and the app dispatches
    after the response, drain the outbox once the response is closed.
    """
    if not g.get("outbox_pending"):
        return response
    if current_app.config.get("OUTBOX_DISPATCH_MODE") != "after_response":
        return response

    app = current_app._get_current_object()

    def _drain():
        with app.app_context():
            try:
                drain_outbox()
            except Exception:
                db.session.rollback()
                logger.exception("After-response outbox dispatch failed")

    response.call_on_close(_drain)
    return response


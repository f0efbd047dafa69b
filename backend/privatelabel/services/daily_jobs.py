# Overview: Daily scheduled sweeps: auto-promotion into production and 7-day reminders.

from __future__ import annotations

import logging
import time
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ClientOrder, IN_PRODUCTION_STATUSES
from ..time_utils import today as utc_today, utcnow
from . import notification_service, order_service, outbox_service
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)


def auto_promote_orders(*, today: Optional[date] = None) -> int:
    """
    Move waiting orders whose production start date has arrived into
    stage_1. ship_asap orders are left for manual promotion. Each order is
    committed on its own; a failure is logged and the sweep moves on.
    """
    today = today or utc_today()
    order_ids = [
        order_id
        for (order_id,) in db.session.query(ClientOrder.id)
        .filter(
            ClientOrder.status == "waiting",
            ClientOrder.ship_asap.is_(False),
            ClientOrder.production_start_date <= today,
        )
        .order_by(ClientOrder.id)
    ]

    promoted = 0
    for order_id in order_ids:
        def _op(order_id=order_id) -> bool:
            order = db.session.get(ClientOrder, order_id)
            # Re-check: an operator may have changed it since the query
            if order is None or order.status != "waiting" or order.ship_asap:
                return False
            order_service.apply_status(order, "stage_1")
            db.session.commit()
            return True

        try:
            if run_with_retry(_op):
                promoted += 1
        except Exception:
            db.session.rollback()
            logger.exception("Auto-promotion failed for order %s", order_id)

    logger.info("Auto-promoted %d order(s) to production", promoted)
    return promoted


def send_seven_day_reminders(*, today: Optional[date] = None) -> int:
    """
    Remind clients whose in-production order is due in exactly
    REMINDER_LEAD_DAYS days. The reminder flag keeps this at most once per
    order; unsent reminders are retried on the next day's run only while
    they are still inside the one-day window.
    """
    today = today or utc_today()
    lead = current_app.config.get("REMINDER_LEAD_DAYS", 7)
    target = today + timedelta(days=lead)

    order_ids = [
        order_id
        for (order_id,) in db.session.query(ClientOrder.id)
        .filter(
            ClientOrder.status.in_(IN_PRODUCTION_STATUSES),
            ClientOrder.delivery_date >= target,
            ClientOrder.delivery_date < target + timedelta(days=1),
            ClientOrder.email_seven_day_reminder_sent.is_(False),
        )
        .order_by(ClientOrder.id)
    ]

    sent = 0
    for order_id in order_ids:
        try:
            if notification_service.send_seven_day_reminder(order_id):
                sent += 1
        except Exception:
            db.session.rollback()
            logger.exception("7-day reminder failed for order %s", order_id)

    logger.info("Sent %d 7-day reminder(s)", sent)
    return sent


def run_daily_jobs(*, today: Optional[date] = None) -> dict:
    """Both sweeps in order, then flush the outbox they filled."""
    logger.info("Running daily private-label jobs")
    promoted = auto_promote_orders(today=today)
    reminders = send_seven_day_reminders(today=today)
    try:
        outbox = outbox_service.drain_outbox()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Outbox drain after daily jobs failed")
        outbox = None
    return {"promoted": promoted, "reminders_sent": reminders, "outbox": outbox}


def seconds_until_next_run(now: datetime, *, hour: int, minute: int) -> float:
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


def run_scheduler(*, stop: Optional[Callable[[], bool]] = None, sleep: Callable[[float], None] = time.sleep) -> None:
    """Run the daily jobs forever at DAILY_JOBS_HOUR:DAILY_JOBS_MINUTE (UTC)."""
    hour = current_app.config.get("DAILY_JOBS_HOUR", 0)
    minute = current_app.config.get("DAILY_JOBS_MINUTE", 0)
    logger.info("Daily job scheduler started (fires at %02d:%02d UTC)", hour, minute)
    while not (stop and stop()):
        sleep(seconds_until_next_run(utcnow(), hour=hour, minute=minute))
        if stop and stop():
            break
        try:
            run_daily_jobs()
        except Exception:
            db.session.rollback()
            logger.exception("Daily job run failed")

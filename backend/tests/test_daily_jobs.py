# Overview: Pytest coverage for the daily auto-promotion and 7-day reminder sweeps.

from datetime import datetime, timedelta

from conftest import make_order
from privatelabel.extensions import mail
from privatelabel.services import daily_jobs, order_service, outbox_service
from privatelabel.time_utils import today


class TestAutoPromotion:
    """Waiting orders move to stage_1 on their production start date."""

    def test_due_order_promoted(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label, delivery_in_days=10)
        assert order.production_start_date == today()

        promoted = daily_jobs.auto_promote_orders(today=today())

        assert promoted == 1
        assert order.status == "stage_1"

    def test_future_order_left_waiting(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label, delivery_in_days=30)

        assert daily_jobs.auto_promote_orders(today=today()) == 0
        assert order.status == "waiting"

    def test_promotes_when_run_late(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label, delivery_in_days=30)

        promoted = daily_jobs.auto_promote_orders(today=order.production_start_date + timedelta(days=3))

        assert promoted == 1
        assert order.status == "stage_1"

    def test_ship_asap_orders_skipped(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label, delivery_in_days=5, ship_asap=True)

        assert daily_jobs.auto_promote_orders(today=today()) == 0
        assert order.status == "waiting"

    def test_promotion_sends_production_email(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label, delivery_in_days=10)
        outbox_service.drain_outbox()

        with mail.record_messages() as outbox:
            result = daily_jobs.run_daily_jobs(today=today())

        assert result["promoted"] == 1
        assert result["outbox"]["processed"] >= 1
        assert [m.subject for m in outbox] == [f"Your order is now in production! ({order.order_number})"]


class TestSevenDayReminder:

    def _in_production(self, pl_client, label, delivery_in_days):
        order = make_order(pl_client, label, delivery_in_days=delivery_in_days)
        order_service.update_status(order.id, "stage_2")
        return order

    def test_reminder_sent_seven_days_out(self, db_session, pl_client, ready_label):
        order = self._in_production(pl_client, ready_label, 7)

        with mail.record_messages() as outbox:
            sent = daily_jobs.send_seven_day_reminders(today=today())

        assert sent == 1
        assert [m.subject for m in outbox] == [f"Your order ships in 7 days! ({order.order_number})"]
        assert order.email_seven_day_reminder_sent is True

    def test_reminder_sent_once(self, db_session, pl_client, ready_label):
        self._in_production(pl_client, ready_label, 7)
        daily_jobs.send_seven_day_reminders(today=today())

        with mail.record_messages() as outbox:
            assert daily_jobs.send_seven_day_reminders(today=today()) == 0
        assert outbox == []

    def test_other_delivery_dates_ignored(self, db_session, pl_client, ready_label):
        self._in_production(pl_client, ready_label, 6)
        self._in_production(pl_client, ready_label, 8)

        assert daily_jobs.send_seven_day_reminders(today=today()) == 0

    def test_waiting_orders_not_reminded(self, db_session, pl_client, ready_label):
        make_order(pl_client, ready_label, delivery_in_days=7, ship_asap=True)

        assert daily_jobs.send_seven_day_reminders(today=today()) == 0


class TestScheduler:

    def test_seconds_until_later_today(self):
        now = datetime(2030, 1, 1, 22, 30)
        assert daily_jobs.seconds_until_next_run(now, hour=23, minute=0) == 1800

    def test_seconds_until_tomorrow(self):
        now = datetime(2030, 1, 1, 0, 0, 5)
        assert daily_jobs.seconds_until_next_run(now, hour=0, minute=0) == 24 * 3600 - 5

    def test_scheduler_runs_jobs_and_stops(self, app, db_session, monkeypatch):
        runs = []
        monkeypatch.setattr(daily_jobs, "run_daily_jobs", lambda: runs.append(1))

        daily_jobs.run_scheduler(stop=lambda: len(runs) >= 2, sleep=lambda seconds: None)

        assert runs == [1, 1]

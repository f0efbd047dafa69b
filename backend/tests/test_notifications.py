# Overview: Pytest coverage for at-most-once lifecycle emails and outbox retries.

"""
Notification Tests

Every order email is guarded by its emails_sent flag:
- a successful send flips the flag; a second attempt sends nothing
- a failed send leaves the flag unset and the outbox task is retried
- a failed email never rolls back the state change that triggered it
"""

from datetime import timedelta

import pytest

from conftest import make_order
from privatelabel.extensions import mail
from privatelabel.models import OutboxTask
from privatelabel.services import email_service, notification_service, order_service, outbox_service
from privatelabel.time_utils import utcnow


@pytest.fixture
def failing_mail(monkeypatch):
    """Make every send report a transport failure."""
    calls = []

    def _fail(to, subject, html):
        calls.append((to, subject))
        return False

    monkeypatch.setattr(email_service, "send_email", _fail)
    return calls


class TestOrderEmails:

    def test_order_created_email(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label)

        with mail.record_messages() as outbox:
            result = outbox_service.drain_outbox()

        assert result["processed"] == 1
        assert len(outbox) == 1
        assert outbox[0].subject == f"Order Confirmed! ({order.order_number})"
        assert outbox[0].recipients == ["owner@greenleaf.test"]
        assert "Mango" in outbox[0].html
        assert order.emails_sent["order_created_notification"] is True

    def test_email_sent_at_most_once(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label)
        outbox_service.drain_outbox()

        with mail.record_messages() as outbox:
            assert notification_service.send_order_created(order.id) is True

        assert outbox == []

    def test_production_started_once_per_entry(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label)
        outbox_service.drain_outbox()

        with mail.record_messages() as outbox:
            order_service.update_status(order.id, "stage_1")
            order_service.update_status(order.id, "stage_2")
            order_service.update_status(order.id, "stage_1")
            outbox_service.drain_outbox()

        assert [m.subject for m in outbox] == [f"Your order is now in production! ({order.order_number})"]

    def test_ready_to_ship_email(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label)
        outbox_service.drain_outbox()

        with mail.record_messages() as outbox:
            order_service.update_status(order.id, "ready_to_ship")
            outbox_service.drain_outbox()

        assert [m.subject for m in outbox] == [f"Your order is ready to ship! ({order.order_number})"]
        assert order.email_ready_to_ship_sent is True

    def test_shipped_email_to_client_and_rep(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label)
        outbox_service.drain_outbox()

        with mail.record_messages() as outbox:
            order_service.update_status(order.id, "shipped", tracking_number="1Z999")
            outbox_service.drain_outbox()

        by_recipient = {m.recipients[0]: m for m in outbox}
        assert set(by_recipient) == {"owner@greenleaf.test", "jamie@reps.test"}
        assert "1Z999" in by_recipient["owner@greenleaf.test"].html
        assert "12 Main St" in by_recipient["owner@greenleaf.test"].html
        assert order.email_shipped_sent is True

    def test_shipped_without_rep_email_is_not_marked(self, db_session, pl_client, rep, ready_label):
        rep.email = None
        db_session.commit()
        order = make_order(pl_client, ready_label)
        order_service.update_status(order.id, "shipped")

        with mail.record_messages() as outbox:
            outbox_service.drain_outbox()

        assert [m for m in outbox if "shipped" in m.subject] == []
        db_session.refresh(order)
        assert order.email_shipped_sent is False
        task = db_session.query(OutboxTask).filter_by(kind=outbox_service.ORDER_SHIPPED).one()
        assert task.status == "failed"

        rep.email = "jamie@reps.test"
        db_session.commit()
        with mail.record_messages() as outbox:
            outbox_service.drain_outbox(now=utcnow() + timedelta(hours=2))

        assert {m.recipients[0] for m in outbox if "shipped" in m.subject.lower()} == {
            "owner@greenleaf.test",
            "jamie@reps.test",
        }
        db_session.refresh(order)
        assert order.email_shipped_sent is True

    def test_missing_order_is_skipped(self, db_session):
        assert notification_service.send_ready_to_ship(9999) is None


class TestEmailFailures:

    def test_failed_send_leaves_flag_unset(self, db_session, pl_client, ready_label, failing_mail):
        order = make_order(pl_client, ready_label)

        assert notification_service.send_order_created(order.id) is False

        db_session.refresh(order)
        assert order.email_order_created_sent is False
        assert failing_mail == [("owner@greenleaf.test", f"Order Confirmed! ({order.order_number})")]

    def test_failed_task_is_retried_later(self, db_session, pl_client, ready_label, monkeypatch):
        order = make_order(pl_client, ready_label)
        monkeypatch.setattr(email_service, "send_email", lambda to, subject, html: False)

        stats = outbox_service.drain_outbox()

        task = db_session.query(OutboxTask).filter_by(kind=outbox_service.ORDER_CREATED).one()
        assert stats["failed"] == 1
        assert task.status == "failed"
        assert task.attempts == 1
        assert task.available_at > utcnow()

        monkeypatch.undo()
        with mail.record_messages() as outbox:
            outbox_service.drain_outbox(now=utcnow() + timedelta(hours=2))

        db_session.refresh(task)
        assert task.status == "done"
        assert task.attempts == 2
        assert len(outbox) == 1
        assert order.emails_sent["order_created_notification"] is True

    def test_status_change_survives_email_failure(self, db_session, pl_client, ready_label, failing_mail):
        order = make_order(pl_client, ready_label)

        order_service.update_status(order.id, "shipped")
        outbox_service.drain_outbox()

        db_session.refresh(order)
        assert order.status == "shipped"
        assert order.email_shipped_sent is False

    def test_task_gives_up_after_max_attempts(self, app, db_session, pl_client, ready_label, failing_mail):
        make_order(pl_client, ready_label)
        max_attempts = app.config["OUTBOX_MAX_ATTEMPTS"]

        now = utcnow()
        for _ in range(max_attempts + 2):
            now += timedelta(hours=2)
            outbox_service.drain_outbox(now=now)

        task = db_session.query(OutboxTask).filter_by(kind=outbox_service.ORDER_CREATED).one()
        assert task.status == "failed"
        assert task.attempts == max_attempts
        assert len(failing_mail) == max_attempts


class TestMailTransport:

    def test_send_email_reports_transport_errors(self, app, monkeypatch):
        def _raise(message):
            raise ConnectionRefusedError("smtp down")

        monkeypatch.setattr(mail, "send", _raise)

        assert email_service.send_email("someone@example.test", "Hi", "<p>Hi</p>") is False

    def test_send_email_requires_recipient(self, app):
        assert email_service.send_email("", "Hi", "<p>Hi</p>") is False

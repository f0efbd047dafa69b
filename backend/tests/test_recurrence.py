# Overview: Pytest coverage for recurring order generation on shipment.

from datetime import date, timedelta
from decimal import Decimal

import pytest

from conftest import make_order
from privatelabel.extensions import mail
from privatelabel.models import ClientOrder
from privatelabel.services import order_service, outbox_service, recurrence_service
from privatelabel.time_utils import add_months


def _ship(order, tracking="1Z999"):
    order_service.update_status(order.id, "shipped", tracking_number=tracking)
    outbox_service.drain_outbox()


def _enable(db_session, client, interval):
    client.recurring_enabled = True
    client.recurring_interval = interval
    db_session.commit()


class TestCalendarMath:

    @pytest.mark.parametrize("start, months, expected", [
        (date(2030, 1, 15), 1, date(2030, 2, 15)),
        (date(2030, 1, 31), 1, date(2030, 2, 28)),
        (date(2032, 1, 31), 1, date(2032, 2, 29)),
        (date(2030, 11, 30), 3, date(2031, 2, 28)),
        (date(2030, 12, 10), 2, date(2031, 2, 10)),
    ])
    def test_add_months_clamps_day(self, start, months, expected):
        assert add_months(start, months) == expected

    def test_interval_months(self):
        base = date(2030, 3, 1)
        assert recurrence_service.next_delivery_date(base, "monthly") == date(2030, 4, 1)
        assert recurrence_service.next_delivery_date(base, "bimonthly") == date(2030, 5, 1)
        assert recurrence_service.next_delivery_date(base, "quarterly") == date(2030, 6, 1)
        assert recurrence_service.next_delivery_date(base, None) == date(2030, 4, 1)

    def test_recurring_start_not_clamped(self, app):
        past = date(2000, 1, 20)
        assert recurrence_service.recurring_production_start(past) == date(2000, 1, 6)


class TestRecurringGeneration:
    """Shipping an order of a recurring client spawns the next cycle."""

    def test_shipping_creates_next_order(self, db_session, pl_client, ready_label):
        _enable(db_session, pl_client, "monthly")
        parent = make_order(pl_client, ready_label, quantity=40, discount=10, discount_type="percentage")

        _ship(parent)

        child = db_session.query(ClientOrder).filter_by(parent_order_id=parent.id).one()
        assert child.is_recurring is True
        assert child.status == "waiting"
        assert child.ship_asap is False
        assert child.delivery_date == add_months(parent.delivery_date, 1)
        assert child.production_start_date == child.delivery_date - timedelta(days=14)
        assert child.order_number != parent.order_number
        assert child.note == f"Recurring order - Auto-generated from {parent.order_number}"
        assert child.subtotal == parent.subtotal
        assert child.discount_amount == parent.discount_amount
        assert child.total == parent.total
        assert [(i.label_id, i.quantity, i.unit_price) for i in child.items] == [
            (i.label_id, i.quantity, i.unit_price) for i in parent.items
        ]

    def test_quarterly_interval(self, db_session, pl_client, ready_label):
        _enable(db_session, pl_client, "quarterly")
        parent = make_order(pl_client, ready_label)

        _ship(parent)

        child = db_session.query(ClientOrder).filter_by(parent_order_id=parent.id).one()
        assert child.delivery_date == add_months(parent.delivery_date, 3)

    def test_no_recurrence_when_disabled(self, db_session, pl_client, ready_label):
        parent = make_order(pl_client, ready_label)

        _ship(parent)

        assert db_session.query(ClientOrder).count() == 1

    def test_reshipping_does_not_duplicate(self, db_session, pl_client, ready_label):
        _enable(db_session, pl_client, "monthly")
        parent = make_order(pl_client, ready_label)
        _ship(parent)

        order_service.update_status(parent.id, "stage_4")
        _ship(parent, tracking="1Z000")

        assert db_session.query(ClientOrder).filter_by(parent_order_id=parent.id).count() == 1

    def test_recurring_prices_are_not_reresolved(self, db_session, pl_client, ready_label, products):
        _enable(db_session, pl_client, "monthly")
        parent = make_order(pl_client, ready_label, quantity=4)
        products["BIOMAX"].unit_price = 9
        db_session.commit()

        _ship(parent)

        child = db_session.query(ClientOrder).filter_by(parent_order_id=parent.id).one()
        assert child.items[0].unit_price == Decimal("1.75")

    def test_recurring_notifications_sent(self, db_session, pl_client, ready_label):
        _enable(db_session, pl_client, "monthly")
        parent = make_order(pl_client, ready_label)
        outbox_service.drain_outbox()

        with mail.record_messages() as outbox:
            _ship(parent)

        subjects = [m.subject for m in outbox]
        child = db_session.query(ClientOrder).filter_by(parent_order_id=parent.id).one()
        assert f"Your order has shipped! ({parent.order_number})" in subjects
        assert f"Order shipped for Green Leaf ({parent.order_number})" in subjects
        assert f"Order Confirmed! ({child.order_number})" in subjects
        assert f"Recurring order created for Green Leaf ({child.order_number})" in subjects

    def test_generator_failure_does_not_affect_shipment(self, db_session, pl_client, ready_label, monkeypatch):
        _enable(db_session, pl_client, "monthly")
        parent = make_order(pl_client, ready_label)

        def _boom(order):
            raise RuntimeError("generator down")

        monkeypatch.setattr(recurrence_service, "create_recurring_order", _boom)
        _ship(parent)

        db_session.refresh(parent)
        assert parent.status == "shipped"
        assert db_session.query(ClientOrder).count() == 1

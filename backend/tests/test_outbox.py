# Overview: Pytest coverage for outbox enqueue, claiming, dispatch modes and the worker loop.

from datetime import timedelta

import pytest
from flask import g

from conftest import make_order
from privatelabel.extensions import db
from privatelabel.models import OutboxTask
from privatelabel.services import outbox_service
from privatelabel.time_utils import utcnow


class TestEnqueue:

    def test_unknown_kind_rejected(self, db_session):
        with pytest.raises(ValueError):
            outbox_service.enqueue("send_fax", order_id=1)

    def test_task_committed_with_state_change(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label)

        task = db_session.query(OutboxTask).one()
        assert task.kind == outbox_service.ORDER_CREATED
        assert task.payload == {"order_id": order.id, "is_recurring": False}
        assert task.status == "pending"
        assert task.attempts == 0

    def test_rolled_back_change_leaves_no_task(self, db_session, pl_client, ready_label):
        outbox_service.enqueue(outbox_service.READY_TO_SHIP, order_id=ready_label.id)
        db_session.rollback()

        assert db_session.query(OutboxTask).count() == 0


class TestDispatcher:

    def test_claim_is_exclusive(self, app, db_session, pl_client, ready_label):
        make_order(pl_client, ready_label)
        task_id = db_session.query(OutboxTask.id).scalar()
        dispatcher = outbox_service.OutboxDispatcher()

        assert dispatcher._claim(task_id) is True
        assert dispatcher._claim(task_id) is False

    def test_unknown_handler_marks_failed(self, app, db_session):
        task = OutboxTask(kind="legacy_kind", payload={}, status="pending", attempts=0, available_at=utcnow())
        db_session.add(task)
        db_session.commit()

        stats = outbox_service.OutboxDispatcher().dispatch_pending()

        db_session.refresh(task)
        assert stats == {"processed": 0, "failed": 1, "skipped": 0}
        assert task.status == "failed"
        assert "No handler registered" in task.last_error

    def test_tasks_not_yet_available_are_left(self, app, db_session, pl_client, ready_label):
        make_order(pl_client, ready_label)
        task = db_session.query(OutboxTask).one()
        task.available_at = utcnow() + timedelta(minutes=10)
        db_session.commit()

        assert outbox_service.drain_outbox()["processed"] == 0
        assert outbox_service.drain_outbox(now=utcnow() + timedelta(minutes=11))["processed"] == 1

    def test_worker_loop_dispatches_until_stopped(self, app, db_session, pl_client, ready_label):
        make_order(pl_client, ready_label)
        checks = iter([False, True])

        outbox_service.OutboxDispatcher().run_forever(poll_interval=0, stop=lambda: next(checks))

        assert db_session.query(OutboxTask).one().status == "done"


class TestAfterResponseDispatch:

    def test_drains_when_response_closes(self, app, db_session, pl_client, ready_label):
        make_order(pl_client, ready_label)
        previous_mode = app.config["OUTBOX_DISPATCH_MODE"]
        app.config["OUTBOX_DISPATCH_MODE"] = "after_response"
        try:
            with app.test_request_context():
                g.outbox_pending = True
                response = outbox_service.dispatch_after_response(app.response_class("ok"))
                g.pop("outbox_pending", None)
            response.close()
        finally:
            app.config["OUTBOX_DISPATCH_MODE"] = previous_mode

        db.session.expire_all()
        assert db_session.query(OutboxTask).one().status == "done"

    def test_manual_mode_leaves_tasks_pending(self, app, db_session, pl_client, ready_label):
        make_order(pl_client, ready_label)

        with app.test_request_context():
            g.outbox_pending = True
            response = outbox_service.dispatch_after_response(app.response_class("ok"))
            g.pop("outbox_pending", None)
        response.close()

        assert db_session.query(OutboxTask).one().status == "pending"

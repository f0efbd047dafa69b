# Overview: Pytest coverage for CLI command groups and PII redaction in logs.

import logging

from conftest import make_order
from privatelabel.logging_config import PiiRedactionFilter
from privatelabel.models import OutboxTask, PrivateLabelProduct, Rep, Store


def _record(msg, *args):
    return logging.LogRecord("privatelabel", logging.INFO, __file__, 1, msg, args, None)


class TestPiiRedaction:

    def test_emails_redacted(self):
        record = _record("Email '%s' sent to %s", "Order Confirmed!", "owner@greenleaf.test")
        PiiRedactionFilter().filter(record)
        assert record.getMessage() == "Email 'Order Confirmed!' sent to [REDACTED_EMAIL]"

    def test_approval_links_redacted(self):
        record = _record("link http://frontend.test/label-approval/abcDEF_123-x")
        PiiRedactionFilter().filter(record)
        assert "abcDEF_123" not in record.getMessage()
        assert "/label-approval/[REDACTED]" in record.getMessage()


class TestCommands:

    def test_catalog_seed(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['catalog', 'seed'])

        assert result.exit_code == 0
        assert "BIOMAX" in result.output
        assert db_session.query(PrivateLabelProduct).count() == 2

    def test_directory_commands(self, app, db_session):
        runner = app.test_cli_runner()

        assert runner.invoke(args=['directory', 'add-store', '--name', 'Green Leaf', '--city', 'Portland']).exit_code == 0
        assert runner.invoke(args=['directory', 'add-rep', '--name', 'Jamie', '--email', 'Jamie@Reps.test']).exit_code == 0

        assert db_session.query(Store).one().city == "Portland"
        assert db_session.query(Rep).one().email == "jamie@reps.test"

    def test_jobs_daily_with_date(self, app, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label, delivery_in_days=30)

        result = app.test_cli_runner().invoke(
            args=['jobs', 'daily', '--date', order.production_start_date.isoformat()]
        )

        assert result.exit_code == 0
        assert "Promoted 1 order(s)" in result.output
        db_session.refresh(order)
        assert order.status == "stage_1"

    def test_jobs_rejects_bad_date(self, app, db_session):
        result = app.test_cli_runner().invoke(args=['jobs', 'promote', '--date', 'tomorrow'])
        assert result.exit_code != 0

    def test_outbox_drain_and_retry(self, app, db_session, pl_client, ready_label):
        make_order(pl_client, ready_label)
        task = db_session.query(OutboxTask).one()
        task.status = "failed"
        task.attempts = 5
        db_session.commit()
        runner = app.test_cli_runner()

        result = runner.invoke(args=['outbox', 'retry', str(task.id)])
        assert result.exit_code == 0
        db_session.refresh(task)
        assert (task.status, task.attempts) == ("pending", 0)

        result = runner.invoke(args=['outbox', 'drain'])
        assert result.exit_code == 0
        assert "1 processed" in result.output

    def test_outbox_list(self, app, db_session, pl_client, ready_label):
        make_order(pl_client, ready_label)
        result = app.test_cli_runner().invoke(args=['outbox', 'list', '--status', 'pending'])
        assert result.exit_code == 0
        assert "order_created" in result.output

# Overview: Pytest coverage for private-label client enrollment, schedules and deletion.

import pytest

from conftest import make_label, make_order
from privatelabel.models import Label, PrivateLabelClient, TERMINAL_LABEL_STAGE
from privatelabel.services import client_service, order_service
from privatelabel.validation import ConflictError, NotFoundError, StateConflictError, ValidationError


class TestEnrollment:

    def test_create_client_starts_onboarding(self, db_session, store, rep):
        client = client_service.create_client({
            "store_id": store.id,
            "contact_email": " Owner@GreenLeaf.test ",
            "assigned_rep_id": rep.id,
        })

        assert client.status == "onboarding"
        assert client.contact_email == "owner@greenleaf.test"
        assert client.recurring_schedule == {"enabled": False, "interval": None}

    def test_one_client_per_store(self, db_session, pl_client, store, rep):
        with pytest.raises(ConflictError) as exc:
            client_service.create_client({
                "store_id": store.id,
                "contact_email": "again@greenleaf.test",
                "assigned_rep_id": rep.id,
            })
        assert exc.value.details["client_id"] == pl_client.id

    def test_unknown_store(self, db_session, rep):
        with pytest.raises(NotFoundError):
            client_service.create_client({"store_id": 9999, "contact_email": "a@b.test", "assigned_rep_id": rep.id})

    def test_rep_required(self, db_session, store):
        with pytest.raises(ValidationError):
            client_service.create_client({"store_id": store.id, "contact_email": "a@b.test"})

    def test_invalid_email(self, db_session, store, rep):
        with pytest.raises(ValidationError):
            client_service.create_client({"store_id": store.id, "contact_email": "nope", "assigned_rep_id": rep.id})


class TestRecurringSchedule:

    def test_enable_requires_interval(self, db_session, pl_client):
        with pytest.raises(ValidationError):
            client_service.update_schedule(pl_client.id, {"enabled": True})

    def test_unknown_interval_rejected(self, db_session, pl_client):
        with pytest.raises(ValidationError):
            client_service.update_schedule(pl_client.id, {"enabled": True, "interval": "weekly"})

    def test_enable_and_disable(self, db_session, pl_client):
        client_service.update_schedule(pl_client.id, {"enabled": True, "interval": "bimonthly"})
        assert pl_client.recurring_schedule == {"enabled": True, "interval": "bimonthly"}

        client_service.update_schedule(pl_client.id, {"enabled": False, "interval": "bimonthly"})
        assert pl_client.recurring_enabled is False

    def test_schedule_through_update_client(self, db_session, pl_client):
        client_service.update_client(pl_client.id, {"recurring_schedule": {"enabled": True, "interval": "quarterly"}})
        assert pl_client.recurring_interval == "quarterly"


class TestListing:

    def test_list_with_label_counts(self, db_session, pl_client, other_client, products):
        make_label(pl_client, flavor="A", stage=TERMINAL_LABEL_STAGE)
        make_label(pl_client, flavor="B")
        make_label(pl_client, flavor="C", stage="olcc_approved")

        result = client_service.list_clients()

        assert result["total"] == 2
        assert result["limit"] == 50
        # Ordered by store name: Blue Door before Green Leaf
        assert [c["id"] for c in result["clients"]] == [other_client.id, pl_client.id]
        assert result["clients"][1]["label_counts"] == {"approved": 1, "in_progress": 2}
        assert result["clients"][0]["label_counts"] == {"approved": 0, "in_progress": 0}

    def test_filters(self, db_session, pl_client, other_client):
        assert client_service.list_clients(status="active")["total"] == 1
        assert client_service.list_clients(search="green")["clients"][0]["id"] == pl_client.id

    def test_with_approved_labels(self, db_session, pl_client, other_client, ready_label):
        clients = client_service.list_clients_with_approved_labels()
        assert [c.id for c in clients] == [pl_client.id]


class TestDeletion:

    def test_delete_cascades_labels(self, db_session, pl_client, products):
        make_label(pl_client)
        client_id = pl_client.id

        client_service.delete_client(client_id)

        assert db_session.get(PrivateLabelClient, client_id) is None
        assert db_session.query(Label).filter_by(client_id=client_id).count() == 0

    def test_active_orders_block_delete(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label)
        order_service.update_status(order.id, "stage_2")

        with pytest.raises(StateConflictError) as exc:
            client_service.delete_client(pl_client.id)
        assert "waiting or in production" in str(exc.value)

    def test_order_history_blocks_delete(self, db_session, pl_client, ready_label):
        order = make_order(pl_client, ready_label)
        order_service.update_status(order.id, "shipped")

        with pytest.raises(StateConflictError):
            client_service.delete_client(pl_client.id)

# Overview: Pytest coverage for label stages, history, deletion and store approval links.

"""
Label Service Tests

Covers the design approval pipeline:
- Creation starts at design_in_progress with one history entry
- Stage changes append history (with actor and notes)
- Reaching ready_for_production activates an onboarding client exactly once
- Bulk stage moves skip labels already at the target stage
- Store approval links: token issue, lookup, approve, expiry
"""

import re
from datetime import timedelta

import pytest

from conftest import make_label, make_order
from privatelabel.extensions import mail
from privatelabel.models import LABEL_STAGES, OutboxTask, TERMINAL_LABEL_STAGE
from privatelabel.services import client_service, events, label_service, lifecycle_service, outbox_service
from privatelabel.services.actor_service import ActorRef
from privatelabel.time_utils import utcnow
from privatelabel.validation import (
    InvalidStageError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)


def _approval_token(message) -> str:
    match = re.search(r"/label-approval/([A-Za-z0-9_\-]+)", message.html)
    assert match, "approval link missing from email"
    return match.group(1)


class TestLabelCreation:
    """Creating labels."""

    def test_create_starts_at_design_in_progress(self, db_session, pl_client, products, admin):
        """New label has the initial stage and exactly one history entry."""
        label = label_service.create_label(
            {"client_id": pl_client.id, "flavor_name": " Mango ", "product_type": "BIOMAX"},
            actor=ActorRef("admin", admin.id),
        )

        assert label.current_stage == "design_in_progress"
        assert label.flavor_name == "Mango"
        assert len(label.stage_history) == 1
        entry = label.stage_history[0]
        assert entry.stage == "design_in_progress"
        assert entry.changed_by_type == "admin"
        assert entry.changed_by_id == admin.id
        assert entry.notes == "Label created"

    def test_create_rejects_unknown_product_type(self, db_session, pl_client, products):
        with pytest.raises(ValidationError) as exc:
            label_service.create_label(
                {"client_id": pl_client.id, "flavor_name": "Mango", "product_type": "Gummies"}
            )
        assert "BIOMAX" in exc.value.details["valid_product_types"]

    def test_create_rejects_inactive_product_type(self, db_session, pl_client, products):
        products["Rosin"].is_active = False
        db_session.commit()

        with pytest.raises(ValidationError):
            label_service.create_label(
                {"client_id": pl_client.id, "flavor_name": "Mango", "product_type": "Rosin"}
            )

    def test_create_requires_existing_client(self, db_session, products):
        with pytest.raises(NotFoundError):
            label_service.create_label({"client_id": 9999, "flavor_name": "Mango", "product_type": "BIOMAX"})

    def test_create_requires_flavor_name(self, db_session, pl_client, products):
        with pytest.raises(ValidationError):
            label_service.create_label({"client_id": pl_client.id, "flavor_name": "  ", "product_type": "BIOMAX"})


class TestStageTransitions:
    """Stage changes and history."""

    def test_update_stage_appends_history(self, db_session, pl_client, products, rep):
        label = make_label(pl_client)

        label_service.update_stage(
            label.id, "submitted_to_olcc", actor=ActorRef("rep", rep.id), notes="Sent to OLCC"
        )

        assert label.current_stage == "submitted_to_olcc"
        assert [e.stage for e in label.stage_history] == ["design_in_progress", "submitted_to_olcc"]
        last = label.stage_history[-1]
        assert last.changed_by_type == "rep"
        assert last.notes == "Sent to OLCC"

    def test_history_last_entry_matches_current_stage(self, db_session, pl_client, products):
        label = make_label(pl_client)
        for stage in ("store_approved", "design_in_progress", "olcc_approved"):
            label_service.update_stage(label.id, stage)

        assert label.stage_history[-1].stage == label.current_stage == "olcc_approved"
        assert len(label.stage_history) == 4

    def test_invalid_stage_rejected(self, db_session, pl_client, products):
        label = make_label(pl_client)

        with pytest.raises(InvalidStageError) as exc:
            label_service.update_stage(label.id, "printed")

        assert exc.value.details["valid_stages"] == list(LABEL_STAGES)
        assert label.current_stage == "design_in_progress"

    def test_history_resolves_actor_names(self, db_session, pl_client, products, admin):
        label = make_label(pl_client)
        label_service.update_stage(label.id, "store_approved", actor=ActorRef("admin", admin.id))

        data = label_service.label_to_dict(label)

        assert data["stage_history"][-1]["changed_by"] == {"kind": "admin", "id": admin.id, "name": "Ops Admin"}
        assert data["stage_history"][0]["changed_by"] is None

    def test_forward_only_policy_blocks_skips(self, db_session, pl_client, products):
        label = make_label(pl_client)
        previous = lifecycle_service.get_transition_policy()
        assert isinstance(previous, lifecycle_service.PermissiveTransitionPolicy)
        lifecycle_service.set_transition_policy(lifecycle_service.ForwardOnlyTransitionPolicy())
        try:
            with pytest.raises(StateConflictError):
                label_service.update_stage(label.id, "olcc_approved")
            label_service.update_stage(label.id, "awaiting_store_approval")
        finally:
            lifecycle_service.set_transition_policy(previous)

        assert label.current_stage == "awaiting_store_approval"


class TestClientActivation:
    """Onboarding -> active when a label first reaches production."""

    def test_ready_for_production_activates_client(self, db_session, pl_client, products):
        label = make_label(pl_client)
        assert pl_client.status == "onboarding"

        label_service.update_stage(label.id, TERMINAL_LABEL_STAGE)

        db_session.refresh(pl_client)
        assert pl_client.status == "active"

    def test_other_stages_do_not_activate(self, db_session, pl_client, products):
        label = make_label(pl_client)
        label_service.update_stage(label.id, "print_order_submitted")

        db_session.refresh(pl_client)
        assert pl_client.status == "onboarding"

    def test_second_ready_label_is_noop(self, db_session, pl_client, products):
        """Only the first label to reach production flips the status."""
        first = make_label(pl_client, flavor="Mango")
        second = make_label(pl_client, flavor="Lime")
        label_service.update_stage(first.id, TERMINAL_LABEL_STAGE)

        event = events.LabelReachedProduction(label_id=second.id, client_id=pl_client.id)
        assert client_service.activate_on_label_ready(event) is False

        label_service.update_stage(second.id, TERMINAL_LABEL_STAGE)
        db_session.refresh(pl_client)
        assert pl_client.status == "active"


class TestBulkStage:
    """Bulk stage moves for one client."""

    def test_bulk_skips_labels_already_at_stage(self, db_session, pl_client, other_client, products):
        make_label(pl_client, flavor="A")
        make_label(pl_client, flavor="B", stage="olcc_approved")
        make_label(pl_client, flavor="C", stage="olcc_approved")
        untouched = make_label(other_client, flavor="D")

        updated = label_service.bulk_update_stage(pl_client.id, "olcc_approved", notes="Batch approved")

        assert updated == 1
        assert untouched.current_stage == "design_in_progress"

    def test_bulk_to_ready_activates_client(self, db_session, pl_client, products):
        make_label(pl_client, flavor="A")
        make_label(pl_client, flavor="B")

        updated = label_service.bulk_update_stage(pl_client.id, TERMINAL_LABEL_STAGE)

        db_session.refresh(pl_client)
        assert updated == 2
        assert pl_client.status == "active"

    def test_bulk_unknown_client(self, db_session, products):
        with pytest.raises(NotFoundError):
            label_service.bulk_update_stage(9999, "store_approved")


class TestLabelDeletion:

    def test_delete_unused_label(self, db_session, pl_client, products):
        label = make_label(pl_client)
        label_id = label.id

        label_service.delete_label(label_id)

        with pytest.raises(NotFoundError):
            label_service.get_label(label_id)

    def test_delete_label_used_in_order_rejected(self, db_session, pl_client, ready_label):
        make_order(pl_client, ready_label)

        with pytest.raises(StateConflictError):
            label_service.delete_label(ready_label.id)


class TestApprovedLabels:

    def test_only_ready_labels_listed_with_price(self, db_session, pl_client, ready_label, products):
        make_label(pl_client, flavor="Not Yet", stage="olcc_approved")

        labels = label_service.approved_labels_for_client(pl_client.id)

        assert [label["flavor_name"] for label in labels] == ["Mango"]
        assert labels[0]["unit_price"] == "1.75"


class TestStoreApprovalLink:
    """Emailed approval link for awaiting_store_approval labels."""

    def _request_approval(self, app, pl_client):
        label = make_label(pl_client, with_image=True)
        label_service.update_stage(label.id, "awaiting_store_approval")
        with mail.record_messages() as outbox:
            outbox_service.drain_outbox()
        return label, outbox

    def test_entering_awaiting_queues_and_sends_request(self, app, db_session, pl_client, products):
        label, outbox = self._request_approval(app, pl_client)

        assert len(outbox) == 1
        message = outbox[0]
        assert message.recipients == ["owner@greenleaf.test"]
        assert message.subject == "Label Approval Required: Mango (BIOMAX)"
        assert "http://frontend.test/label-approval/" in message.html
        assert label.approval_token_hash is not None

    def test_request_skipped_without_image(self, db_session, pl_client, products):
        label = make_label(pl_client)
        label_service.update_stage(label.id, "awaiting_store_approval")

        with mail.record_messages() as outbox:
            outbox_service.drain_outbox()

        assert outbox == []
        task = db_session.query(OutboxTask).filter_by(kind=outbox_service.LABEL_APPROVAL_REQUEST).one()
        assert task.status == "done"

    def test_token_lookup_and_approve(self, app, db_session, pl_client, products):
        label, outbox = self._request_approval(app, pl_client)
        token = _approval_token(outbox[0])

        summary = label_service.get_label_for_approval(token)
        assert summary["is_already_approved"] is False
        assert summary["label"]["store_name"] == "Green Leaf"

        label_service.approve_by_token(token)

        assert label.current_stage == "store_approved"
        last = label.stage_history[-1]
        assert last.notes == "Approved by store owner via email link"
        assert last.changed_by_type is None
        assert label.approval_token_hash is None

        with mail.record_messages() as sent:
            outbox_service.drain_outbox()
        assert [m.subject for m in sent] == ["Label Approved: Mango (BIOMAX) - Green Leaf"]
        assert sent[0].recipients == ["jamie@reps.test"]

    def test_token_is_single_use(self, app, db_session, pl_client, products):
        label, outbox = self._request_approval(app, pl_client)
        token = _approval_token(outbox[0])
        label_service.approve_by_token(token)

        with pytest.raises(NotFoundError):
            label_service.approve_by_token(token)

    def test_expired_token_rejected(self, app, db_session, pl_client, products):
        label, outbox = self._request_approval(app, pl_client)
        token = _approval_token(outbox[0])
        label.approval_token_expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        with pytest.raises(NotFoundError):
            label_service.get_label_for_approval(token)

    def test_unknown_token_rejected(self, db_session):
        with pytest.raises(NotFoundError):
            label_service.approve_by_token("not-a-real-token")

# Overview: Service-layer operations for lifecycle; stage/status enumerations and transition policy.

"""
Private-Label Lifecycle Rules

================================================================================
LABEL APPROVAL PIPELINE
================================================================================
    design_in_progress -> awaiting_store_approval -> store_approved
    -> submitted_to_olcc -> olcc_approved -> print_order_submitted
    -> ready_for_production

Only ready_for_production labels can be ordered.

================================================================================
ORDER FULFILLMENT PIPELINE
================================================================================
    waiting -> stage_1 -> stage_2 -> stage_3 -> stage_4
    -> ready_to_ship -> shipped          (cancelled reachable from any state)

    waiting:          editable, deletable, swept into stage_1 on its
                      production start date unless ship_asap is set
    stage_1..stage_4: in production; not editable, not deletable
    shipped:          triggers the recurring-order generator

TRANSITIONS:
Operators may set any valid stage/status directly (forward, backward, or
skipping) to correct mistakes. The check lives in a swappable policy object
so a forward-only policy can be installed without touching call sites.
================================================================================
"""

from __future__ import annotations

from ..models import IN_PRODUCTION_STATUSES, LABEL_STAGES, ORDER_STATUSES
from ..validation import InvalidStageError, InvalidStatusError, StateConflictError

VALID_STAGES = frozenset(LABEL_STAGES)
VALID_STATUSES = frozenset(ORDER_STATUSES)


def validate_stage(stage) -> str:
    if stage not in VALID_STAGES:
        raise InvalidStageError(
            f"Invalid stage '{stage}'. Must be one of: {', '.join(LABEL_STAGES)}",
            {"stage": stage, "valid_stages": list(LABEL_STAGES)},
        )
    return stage


def validate_status(status) -> str:
    if status not in VALID_STATUSES:
        raise InvalidStatusError(
            f"Invalid status '{status}'. Must be one of: {', '.join(ORDER_STATUSES)}",
            {"status": status, "valid_statuses": list(ORDER_STATUSES)},
        )
    return status


class PermissiveTransitionPolicy:
    """Accepts any move between valid values."""

    def can_move_label(self, from_stage: str, to_stage: str) -> bool:
        return True

    def can_move_order(self, from_status: str, to_status: str) -> bool:
        return True


class ForwardOnlyTransitionPolicy:
    """
    Stricter alternative: labels advance one stage at a time; orders move
    forward (skips allowed) or to cancelled, and never leave shipped/cancelled.
    """

    def can_move_label(self, from_stage: str, to_stage: str) -> bool:
        if from_stage == to_stage:
            return True
        return LABEL_STAGES.index(to_stage) == LABEL_STAGES.index(from_stage) + 1

    def can_move_order(self, from_status: str, to_status: str) -> bool:
        if from_status == to_status:
            return True
        if from_status in ("shipped", "cancelled"):
            return False
        if to_status == "cancelled":
            return True
        return ORDER_STATUSES.index(to_status) > ORDER_STATUSES.index(from_status)


_policy = PermissiveTransitionPolicy()


def get_transition_policy():
    return _policy


def set_transition_policy(policy) -> None:
    global _policy
    _policy = policy


def ensure_label_transition(from_stage: str, to_stage: str) -> None:
    validate_stage(to_stage)
    if not _policy.can_move_label(from_stage, to_stage):
        raise StateConflictError(
            f"Label cannot move from {from_stage} to {to_stage}",
            {"from_stage": from_stage, "to_stage": to_stage},
        )


def ensure_order_transition(from_status: str, to_status: str) -> None:
    validate_status(to_status)
    if not _policy.can_move_order(from_status, to_status):
        raise StateConflictError(
            f"Order cannot move from {from_status} to {to_status}",
            {"from_status": from_status, "to_status": to_status},
        )


def is_in_production(status: str) -> bool:
    return status in IN_PRODUCTION_STATUSES

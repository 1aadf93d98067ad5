"""Effective leave-request state.

Stored status is not always the whole truth. Rows from before the two-level
workflow say ``SUBMITTED``, and some rows were marked ``APPROVED`` after only
the first approval under a two-level policy. Both cases are reconciled here,
once, when a request is loaded; the transition logic only ever sees an
``EffectiveState``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from coreops.common.constants import LeaveStatus, Permission


class EffectiveState(str, enum.Enum):
    PENDING_L1 = "PENDING_L1"
    PENDING_L2 = "PENDING_L2"
    # APPROVED with the L1 stamp but no L2 stamp under a two-level policy.
    # The final-approval side effects already fired; only the L2 stamp is owed.
    AWAITING_L2_STAMP = "AWAITING_L2_STAMP"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"

    @property
    def is_pending(self) -> bool:
        return self in (EffectiveState.PENDING_L1, EffectiveState.PENDING_L2)


class ApprovalStep(str, enum.Enum):
    STAMP_L1 = "STAMP_L1"            # two-level policy, first approval
    FINAL = "FINAL"                  # consume balance, apply attendance
    STAMP_L2_ONLY = "STAMP_L2_ONLY"  # legacy repair, no side effects


_STORED_TO_EFFECTIVE = {
    LeaveStatus.PENDING_L1: EffectiveState.PENDING_L1,
    LeaveStatus.SUBMITTED: EffectiveState.PENDING_L1,
    LeaveStatus.PENDING_L2: EffectiveState.PENDING_L2,
    LeaveStatus.APPROVED: EffectiveState.APPROVED,
    LeaveStatus.REJECTED: EffectiveState.REJECTED,
    LeaveStatus.CANCELLED: EffectiveState.CANCELLED,
}


@dataclass(frozen=True)
class ResolvedRequest:
    state: EffectiveState
    has_l1_stamp: bool
    approval_levels: int

    @property
    def is_legacy_repair(self) -> bool:
        return self.state is EffectiveState.AWAITING_L2_STAMP


def resolve_state(request: Any, approval_levels: int) -> ResolvedRequest:
    """Reduce a stored request row to its effective state under the policy."""
    stored = LeaveStatus(request.status)
    has_l1 = request.approved_l1_at is not None
    state = _STORED_TO_EFFECTIVE[stored]
    if (
        approval_levels == 2
        and stored is LeaveStatus.APPROVED
        and has_l1
        and request.approved_l2_at is None
    ):
        state = EffectiveState.AWAITING_L2_STAMP
    return ResolvedRequest(state=state, has_l1_stamp=has_l1, approval_levels=approval_levels)


def required_approval_permission(resolved: ResolvedRequest) -> Permission:
    """Permission needed to grant the next approval level."""
    if resolved.approval_levels == 1:
        return Permission.LEAVE_APPROVE_L1
    return Permission.LEAVE_APPROVE_L2 if resolved.has_l1_stamp else Permission.LEAVE_APPROVE_L1


def can_approve(resolved: ResolvedRequest) -> bool:
    return resolved.state.is_pending or resolved.is_legacy_repair


def plan_approval(resolved: ResolvedRequest) -> ApprovalStep:
    """Which approval step an ``approve`` call performs from this state."""
    if resolved.is_legacy_repair:
        return ApprovalStep.STAMP_L2_ONLY
    if resolved.approval_levels == 2 and not resolved.has_l1_stamp:
        return ApprovalStep.STAMP_L1
    return ApprovalStep.FINAL

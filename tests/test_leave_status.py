"""Effective-state resolution for stored leave requests."""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from coreops.common.constants import LeaveStatus, Permission
from coreops.leave.status import (
    ApprovalStep,
    EffectiveState,
    can_approve,
    plan_approval,
    required_approval_permission,
    resolve_state,
)

STAMP = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


def _row(status, *, l1=None, l2=None):
    return SimpleNamespace(status=status, approved_l1_at=l1, approved_l2_at=l2)


class TestResolveState:

    @pytest.mark.parametrize("levels", [1, 2])
    def test_submitted_is_pending_l1(self, levels):
        resolved = resolve_state(_row(LeaveStatus.SUBMITTED), levels)
        assert resolved.state is EffectiveState.PENDING_L1
        assert can_approve(resolved)

    def test_stored_string_status_accepted(self):
        resolved = resolve_state(_row("PENDING_L2", l1=STAMP), 2)
        assert resolved.state is EffectiveState.PENDING_L2

    def test_approved_without_l2_under_two_levels_needs_stamp(self):
        resolved = resolve_state(_row(LeaveStatus.APPROVED, l1=STAMP), 2)
        assert resolved.state is EffectiveState.AWAITING_L2_STAMP
        assert resolved.is_legacy_repair
        assert can_approve(resolved)
        assert plan_approval(resolved) is ApprovalStep.STAMP_L2_ONLY
        assert required_approval_permission(resolved) is Permission.LEAVE_APPROVE_L2

    def test_approved_under_one_level_is_final(self):
        resolved = resolve_state(_row(LeaveStatus.APPROVED, l1=STAMP), 1)
        assert resolved.state is EffectiveState.APPROVED
        assert not can_approve(resolved)

    def test_fully_stamped_approval_is_final(self):
        resolved = resolve_state(_row(LeaveStatus.APPROVED, l1=STAMP, l2=STAMP), 2)
        assert resolved.state is EffectiveState.APPROVED
        assert not can_approve(resolved)

    @pytest.mark.parametrize("status", [LeaveStatus.REJECTED, LeaveStatus.CANCELLED])
    def test_terminal_states(self, status):
        resolved = resolve_state(_row(status), 2)
        assert not resolved.state.is_pending
        assert not can_approve(resolved)


class TestPlanApproval:

    def test_single_level_goes_straight_to_final(self):
        resolved = resolve_state(_row(LeaveStatus.PENDING_L1), 1)
        assert plan_approval(resolved) is ApprovalStep.FINAL
        assert required_approval_permission(resolved) is Permission.LEAVE_APPROVE_L1

    def test_two_levels_first_call_stamps_l1(self):
        resolved = resolve_state(_row(LeaveStatus.PENDING_L1), 2)
        assert plan_approval(resolved) is ApprovalStep.STAMP_L1
        assert required_approval_permission(resolved) is Permission.LEAVE_APPROVE_L1

    def test_two_levels_second_call_is_final(self):
        resolved = resolve_state(_row(LeaveStatus.PENDING_L2, l1=STAMP), 2)
        assert plan_approval(resolved) is ApprovalStep.FINAL
        assert required_approval_permission(resolved) is Permission.LEAVE_APPROVE_L2

    def test_policy_lowered_to_one_level_finishes_pending_l2(self):
        resolved = resolve_state(_row(LeaveStatus.PENDING_L2, l1=STAMP), 1)
        assert plan_approval(resolved) is ApprovalStep.FINAL
        assert required_approval_permission(resolved) is Permission.LEAVE_APPROVE_L1

"""Tests for the status vocabulary and rule checks (no storage involved)"""

from datetime import timedelta

import pytest

from fundplan.domain.models import FundRecord, WithdrawalConfig
from fundplan.domain.enums import ModuleType, RecordStatus, WorkflowAction
from fundplan.engine.transition_resolver import (
    TRANSITION_TABLE, PRE_SUBMISSION_STATUS, TransitionResolver
)

from .conftest import NOW


def _record(**overrides) -> FundRecord:
    fields = {
        "record_id": "REC-test",
        "module_type": ModuleType.PREDICT,
        "status": RecordStatus.SUBMITTED,
        "owner_id": "reporter-1",
        "submitted_at": NOW - timedelta(hours=1),
        "created_at": NOW - timedelta(days=1),
        "updated_at": NOW - timedelta(hours=1),
    }
    fields.update(overrides)
    return FundRecord(**fields)


def _policy(**overrides) -> WithdrawalConfig:
    fields = {
        "module_type": ModuleType.PREDICT,
        "allowed_statuses": [RecordStatus.SUBMITTED],
        "time_limit_hours": 24,
        "max_attempts": 3,
        "require_approval": True,
    }
    fields.update(overrides)
    return WithdrawalConfig(**fields)


@pytest.fixture
def resolver() -> TransitionResolver:
    return TransitionResolver()


class TestTransitionTable:

    def test_table_covers_every_status_action_pair(self):
        assert len(TRANSITION_TABLE) == len(RecordStatus) * len(WorkflowAction)
        for status in RecordStatus:
            for action in WorkflowAction:
                assert (status, action) in TRANSITION_TABLE

    @pytest.mark.parametrize("status, action, target", [
        (RecordStatus.DRAFT, WorkflowAction.SUBMIT, RecordStatus.SUBMITTED),
        (RecordStatus.UNFILLED, WorkflowAction.SUBMIT, RecordStatus.SUBMITTED),
        (RecordStatus.REJECTED, WorkflowAction.SUBMIT, RecordStatus.SUBMITTED),
        (RecordStatus.SUBMITTED, WorkflowAction.REQUEST_WITHDRAWAL, RecordStatus.PENDING_WITHDRAWAL),
        (RecordStatus.SUBMITTED, WorkflowAction.WITHDRAW, RecordStatus.DRAFT),
        (RecordStatus.PENDING_WITHDRAWAL, WorkflowAction.CANCEL_WITHDRAWAL, RecordStatus.SUBMITTED),
        (RecordStatus.PENDING_WITHDRAWAL, WorkflowAction.APPROVE_WITHDRAWAL, RecordStatus.DRAFT),
        (RecordStatus.PENDING_WITHDRAWAL, WorkflowAction.REJECT_WITHDRAWAL, RecordStatus.SUBMITTED),
        (RecordStatus.SUBMITTED, WorkflowAction.APPROVE, RecordStatus.APPROVED),
        (RecordStatus.SUBMITTED, WorkflowAction.REJECT, RecordStatus.REJECTED),
    ])
    def test_legal_transitions(self, resolver, status, action, target):
        outcome = resolver.resolve(status, action)
        assert outcome.ok
        assert outcome.target == target

    @pytest.mark.parametrize("status, action", [
        (RecordStatus.APPROVED, WorkflowAction.SUBMIT),
        (RecordStatus.DRAFT, WorkflowAction.REQUEST_WITHDRAWAL),
        (RecordStatus.SUBMITTED, WorkflowAction.CANCEL_WITHDRAWAL),
        (RecordStatus.PENDING_WITHDRAWAL, WorkflowAction.APPROVE),
        (RecordStatus.REJECTED, WorkflowAction.WITHDRAW),
    ])
    def test_illegal_transitions_are_rejected(self, resolver, status, action):
        outcome = resolver.resolve(status, action)
        assert not outcome.ok
        assert outcome.error.error_code == "INVALID_TRANSITION"
        assert outcome.error.details["current_status"] == status.value

    def test_withdrawn_records_return_to_draft(self):
        assert PRE_SUBMISSION_STATUS == RecordStatus.DRAFT

    def test_terminal_status_has_no_actions(self, resolver):
        assert resolver.get_available_actions(RecordStatus.APPROVED) == []

    def test_submitted_actions(self, resolver):
        assert set(resolver.get_available_actions(RecordStatus.SUBMITTED)) == {
            WorkflowAction.REQUEST_WITHDRAWAL,
            WorkflowAction.WITHDRAW,
            WorkflowAction.APPROVE,
            WorkflowAction.REJECT,
        }


class TestCheckSubmit:

    @pytest.mark.parametrize("status", [RecordStatus.DRAFT, RecordStatus.UNFILLED])
    def test_editable_statuses_submit(self, resolver, status):
        outcome = resolver.check_submit(_record(status=status), policy=None)
        assert outcome.target == RecordStatus.SUBMITTED

    def test_rejected_needs_policy_permission(self, resolver):
        record = _record(status=RecordStatus.REJECTED)

        assert resolver.check_submit(record, _policy()).ok
        assert resolver.check_submit(record, None).error.error_code == "INVALID_STATE"
        denied = resolver.check_submit(record, _policy(allow_resubmit_after_rejection=False))
        assert denied.error.error_code == "INVALID_STATE"

    def test_submitted_cannot_submit_again(self, resolver):
        outcome = resolver.check_submit(_record(), policy=None)
        assert outcome.error.error_code == "INVALID_STATE"


class TestCheckWithdrawal:

    def test_no_policy(self, resolver):
        outcome = resolver.check_withdrawal(_record(), None, NOW)
        assert outcome.error.error_code == "POLICY_NOT_CONFIGURED"

    def test_status_not_allowed(self, resolver):
        outcome = resolver.check_withdrawal(_record(status=RecordStatus.DRAFT), _policy(), NOW)
        assert outcome.error.error_code == "NOT_WITHDRAWABLE"
        assert outcome.error.details["allowed_statuses"] == ["SUBMITTED"]

    def test_window_checked_before_attempts(self, resolver):
        record = _record(submitted_at=NOW - timedelta(hours=25), withdrawal_attempts=3)
        outcome = resolver.check_withdrawal(record, _policy(), NOW)
        assert outcome.error.error_code == "WITHDRAWAL_WINDOW_EXPIRED"

    def test_window_boundary_is_inclusive(self, resolver):
        record = _record(submitted_at=NOW - timedelta(hours=24))
        assert resolver.check_withdrawal(record, _policy(), NOW).ok

    def test_zero_time_limit_means_unlimited(self, resolver):
        record = _record(submitted_at=NOW - timedelta(days=365))
        assert resolver.check_withdrawal(record, _policy(time_limit_hours=0), NOW).ok

    def test_missing_submission_time_fails_closed(self, resolver):
        record = _record(submitted_at=None)
        outcome = resolver.check_withdrawal(record, _policy(), NOW)
        assert outcome.error.error_code == "WITHDRAWAL_WINDOW_EXPIRED"

        assert resolver.check_withdrawal(record, _policy(time_limit_hours=0), NOW).ok

    def test_attempt_budget(self, resolver):
        outcome = resolver.check_withdrawal(_record(withdrawal_attempts=3), _policy(), NOW)
        assert outcome.error.error_code == "WITHDRAWAL_ATTEMPTS_EXCEEDED"
        assert outcome.error.details == {"attempts": 3, "max_attempts": 3}

        assert resolver.check_withdrawal(_record(withdrawal_attempts=2), _policy(), NOW).ok

    def test_approval_selects_target(self, resolver):
        with_approval = resolver.check_withdrawal(_record(), _policy(require_approval=True), NOW)
        direct = resolver.check_withdrawal(_record(), _policy(require_approval=False), NOW)

        assert with_approval.target == RecordStatus.PENDING_WITHDRAWAL
        assert direct.target == RecordStatus.DRAFT

    def test_allowed_status_without_transition(self, resolver):
        # Policy may list a status the table has no withdrawal edge for
        policy = _policy(allowed_statuses=[RecordStatus.SUBMITTED, RecordStatus.APPROVED])
        outcome = resolver.check_withdrawal(_record(status=RecordStatus.APPROVED), policy, NOW)
        assert outcome.error.error_code == "INVALID_TRANSITION"


class TestPendingAndReview:

    def test_pending_checks_require_pending_status(self, resolver):
        outcome = resolver.check_pending_withdrawal(_record(), WorkflowAction.CANCEL_WITHDRAWAL)
        assert outcome.error.error_code == "INVALID_STATE"

        pending = _record(status=RecordStatus.PENDING_WITHDRAWAL)
        assert resolver.check_pending_withdrawal(pending, WorkflowAction.REJECT_WITHDRAWAL).target == RecordStatus.SUBMITTED

    def test_review_requires_submitted(self, resolver):
        assert resolver.check_review(_record(), WorkflowAction.REJECT).target == RecordStatus.REJECTED
        outcome = resolver.check_review(_record(status=RecordStatus.DRAFT), WorkflowAction.APPROVE)
        assert outcome.error.error_code == "INVALID_STATE"

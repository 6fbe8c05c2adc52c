"""Transition Resolver - Record status vocabulary and rule checks

The transition table below is the only place that says which status an
action leads to. Rule checks return an Outcome value instead of raising.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Tuple

from ..domain.models import FundRecord, WithdrawalConfig
from ..domain.enums import RecordStatus, WorkflowAction
from ..domain.errors import (
    DomainError, InvalidTransitionError, InvalidStateError, NotWithdrawableError,
    WithdrawalWindowExpiredError, WithdrawalAttemptsExceededError, PolicyNotConfiguredError
)
from ..utils.time import hours_between, format_iso
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Withdrawn records always go back to DRAFT, whichever editable status they
# were submitted from.
PRE_SUBMISSION_STATUS = RecordStatus.DRAFT

EDITABLE_STATUSES: FrozenSet[RecordStatus] = frozenset({RecordStatus.DRAFT, RecordStatus.UNFILLED})

_LEGAL_TRANSITIONS: Dict[Tuple[RecordStatus, WorkflowAction], RecordStatus] = {
    (RecordStatus.DRAFT, WorkflowAction.SUBMIT): RecordStatus.SUBMITTED,
    (RecordStatus.UNFILLED, WorkflowAction.SUBMIT): RecordStatus.SUBMITTED,
    (RecordStatus.REJECTED, WorkflowAction.SUBMIT): RecordStatus.SUBMITTED,
    (RecordStatus.SUBMITTED, WorkflowAction.REQUEST_WITHDRAWAL): RecordStatus.PENDING_WITHDRAWAL,
    (RecordStatus.SUBMITTED, WorkflowAction.WITHDRAW): PRE_SUBMISSION_STATUS,
    (RecordStatus.PENDING_WITHDRAWAL, WorkflowAction.CANCEL_WITHDRAWAL): RecordStatus.SUBMITTED,
    (RecordStatus.PENDING_WITHDRAWAL, WorkflowAction.APPROVE_WITHDRAWAL): PRE_SUBMISSION_STATUS,
    (RecordStatus.PENDING_WITHDRAWAL, WorkflowAction.REJECT_WITHDRAWAL): RecordStatus.SUBMITTED,
    (RecordStatus.SUBMITTED, WorkflowAction.APPROVE): RecordStatus.APPROVED,
    (RecordStatus.SUBMITTED, WorkflowAction.REJECT): RecordStatus.REJECTED,
}

# Total over every (status, action) pair; None means the action is rejected.
TRANSITION_TABLE: Dict[Tuple[RecordStatus, WorkflowAction], Optional[RecordStatus]] = {
    (status, action): _LEGAL_TRANSITIONS.get((status, action))
    for status in RecordStatus
    for action in WorkflowAction
}


@dataclass(frozen=True)
class Outcome:
    """Result of a rule check: a target status or a typed failure"""
    target: Optional[RecordStatus] = None
    error: Optional[DomainError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def allow(cls, target: RecordStatus) -> "Outcome":
        return cls(target=target)

    @classmethod
    def deny(cls, error: DomainError) -> "Outcome":
        return cls(error=error)


class TransitionResolver:
    """
    Decide the next status of a record for a requested action

    Withdrawal checks run in a fixed order: policy present, status allowed,
    time window, attempt budget, then the transition table.
    """

    def resolve(self, status: RecordStatus, action: WorkflowAction) -> Outcome:
        """Look up the transition table"""
        target = TRANSITION_TABLE[(status, action)]
        if target is None:
            return Outcome.deny(InvalidTransitionError(
                f"Cannot {action.value.lower()} a record in status {status.value}",
                details={"current_status": status.value, "action": action.value}
            ))
        logger.debug(
            f"Resolved transition: {status.value} -> {target.value}",
            extra={"from_status": status.value, "to_status": target.value, "action": action.value}
        )
        return Outcome.allow(target)

    def get_available_actions(self, status: RecordStatus) -> List[WorkflowAction]:
        """All actions the table accepts from a status"""
        return [a for a in WorkflowAction if TRANSITION_TABLE[(status, a)] is not None]

    def check_submit(
        self,
        record: FundRecord,
        policy: Optional[WithdrawalConfig]
    ) -> Outcome:
        if record.status in EDITABLE_STATUSES:
            return self.resolve(record.status, WorkflowAction.SUBMIT)

        if record.status == RecordStatus.REJECTED:
            if policy is not None and policy.allow_resubmit_after_rejection:
                return self.resolve(record.status, WorkflowAction.SUBMIT)
            return Outcome.deny(InvalidStateError(
                "Rejected records cannot be resubmitted for this module",
                details={
                    "current_status": record.status.value,
                    "module_type": record.module_type.value,
                    "policy_configured": policy is not None
                }
            ))

        return Outcome.deny(InvalidStateError(
            f"Record cannot be submitted from status {record.status.value}",
            details={
                "current_status": record.status.value,
                "expected_statuses": sorted(s.value for s in EDITABLE_STATUSES)
            }
        ))

    def check_withdrawal(
        self,
        record: FundRecord,
        policy: Optional[WithdrawalConfig],
        now: datetime
    ) -> Outcome:
        if policy is None:
            return Outcome.deny(PolicyNotConfiguredError(
                f"Withdrawal is not configured for module {record.module_type.value}",
                details={"module_type": record.module_type.value}
            ))

        if not policy.allows(record.status):
            return Outcome.deny(NotWithdrawableError(
                f"Records in status {record.status.value} cannot be withdrawn",
                details={
                    "current_status": record.status.value,
                    "allowed_statuses": [s.value for s in policy.allowed_statuses]
                }
            ))

        if policy.time_limit_hours:
            if record.submitted_at is None:
                # No submission time to measure from; fail closed
                return Outcome.deny(WithdrawalWindowExpiredError(
                    "Record has no submission time; the withdrawal window cannot be verified",
                    details={"time_limit_hours": policy.time_limit_hours}
                ))
            elapsed = hours_between(record.submitted_at, now)
            if elapsed > policy.time_limit_hours:
                return Outcome.deny(WithdrawalWindowExpiredError(
                    f"Withdrawal is only allowed within {policy.time_limit_hours:g} hours of submission; "
                    f"{int(elapsed)} hours have passed",
                    details={
                        "hours_since_submission": round(elapsed, 2),
                        "time_limit_hours": policy.time_limit_hours,
                        "submitted_at": format_iso(record.submitted_at)
                    }
                ))

        if record.withdrawal_attempts >= policy.max_attempts:
            return Outcome.deny(WithdrawalAttemptsExceededError(
                f"Maximum withdrawal attempts ({policy.max_attempts}) reached",
                details={
                    "attempts": record.withdrawal_attempts,
                    "max_attempts": policy.max_attempts
                }
            ))

        action = WorkflowAction.REQUEST_WITHDRAWAL if policy.require_approval else WorkflowAction.WITHDRAW
        return self.resolve(record.status, action)

    def check_pending_withdrawal(self, record: FundRecord, action: WorkflowAction) -> Outcome:
        """Cancel/approve/reject of an open withdrawal"""
        if record.status != RecordStatus.PENDING_WITHDRAWAL:
            return Outcome.deny(InvalidStateError(
                f"Record has no pending withdrawal (status: {record.status.value})",
                details={
                    "current_status": record.status.value,
                    "expected_status": RecordStatus.PENDING_WITHDRAWAL.value
                }
            ))
        return self.resolve(record.status, action)

    def check_review(self, record: FundRecord, action: WorkflowAction) -> Outcome:
        if record.status != RecordStatus.SUBMITTED:
            return Outcome.deny(InvalidStateError(
                f"Only submitted records can be reviewed (status: {record.status.value})",
                details={
                    "current_status": record.status.value,
                    "expected_status": RecordStatus.SUBMITTED.value
                }
            ))
        return self.resolve(record.status, action)

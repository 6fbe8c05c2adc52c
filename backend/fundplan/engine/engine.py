"""
Workflow Engine - Record submission, withdrawal and review

=============================================================================
OPERATIONS
=============================================================================

    submit              DRAFT/UNFILLED (or REJECTED, policy permitting) -> SUBMITTED
    request_withdrawal  SUBMITTED -> PENDING_WITHDRAWAL (approval required)
                        SUBMITTED -> DRAFT (no approval required)
    cancel_withdrawal   PENDING_WITHDRAWAL -> SUBMITTED
    resolve_withdrawal  PENDING_WITHDRAWAL -> DRAFT (approve) / SUBMITTED (reject)
    review              SUBMITTED -> APPROVED / REJECTED

Every operation follows the same pipeline:

    1. Require an actor (session)
    2. Load the record
    3. PermissionGuard check for (actor, module_type, action)
    4. TransitionResolver rule checks (policy, window, attempts, table)
    5. Compare-and-set write on (record_id, version, status)
    6. One audit event; an audit failure is reported, not rolled back

Rule failures are returned inside WorkflowResult, never raised.

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple
from datetime import datetime

from pymongo.database import Database
from pymongo.errors import PyMongoError

from ..domain.models import ActorContext, FundRecord, PendingWithdrawal
from ..domain.enums import (
    AuditAction, Decision, PermissionAction, RecordStatus, WorkflowAction
)
from ..domain.errors import (
    DomainError, AuditError, AuthenticationError, ConcurrencyError,
    PermissionDeniedError, RecordNotFoundError
)
from ..repositories.record_repo import RecordRepository
from ..repositories.withdrawal_config_repo import WithdrawalConfigRepository
from ..repositories.audit_repo import AuditRepository
from .permission_guard import PermissionGuard
from .transition_resolver import TransitionResolver, Outcome
from .audit_writer import AuditWriter
from ..utils.time import utc_now, format_iso
from ..utils.idgen import generate_withdrawal_request_id
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class WorkflowResult:
    """Updated record, or the typed failure that stopped the operation"""
    record: Optional[FundRecord] = None
    error: Optional[DomainError] = None
    audit_error: Optional[AuditError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> FundRecord:
        """Return the record or raise the failure (for the HTTP boundary)"""
        if self.error is not None:
            raise self.error
        return self.record


class WorkflowEngine:
    """
    The Workflow Engine - applies status transitions to one record at a time

    Store handles are injected; nothing here holds process-wide state.
    """

    def __init__(
        self,
        record_repo: RecordRepository,
        config_repo: WithdrawalConfigRepository,
        audit_writer: AuditWriter,
        permission_guard: Optional[PermissionGuard] = None,
        transition_resolver: Optional[TransitionResolver] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.record_repo = record_repo
        self.config_repo = config_repo
        self.audit_writer = audit_writer
        self.permission_guard = permission_guard or PermissionGuard()
        self.transition_resolver = transition_resolver or TransitionResolver()
        self._clock = clock

    @classmethod
    def from_database(
        cls,
        db: Database,
        clock: Callable[[], datetime] = utc_now
    ) -> "WorkflowEngine":
        return cls(
            record_repo=RecordRepository(db),
            config_repo=WithdrawalConfigRepository(db),
            audit_writer=AuditWriter(AuditRepository(db)),
            clock=clock
        )

    # =========================================================================
    # Operations
    # =========================================================================

    def submit(
        self,
        record_id: str,
        actor: Optional[ActorContext],
        correlation_id: Optional[str] = None
    ) -> WorkflowResult:
        """Submit a draft (or resubmit a rejected record); starts a new submission cycle"""
        record, error = self._load_for_action(record_id, actor, PermissionAction.SUBMIT)
        if error:
            return self._fail(record_id, WorkflowAction.SUBMIT, error)

        # Only resubmission after rejection depends on the module policy
        policy = None
        if record.status == RecordStatus.REJECTED:
            policy = self.config_repo.get_config(record.module_type)

        outcome = self.transition_resolver.check_submit(record, policy)
        if not outcome.ok:
            return self._fail(record_id, WorkflowAction.SUBMIT, outcome.error)

        return self._commit(
            record,
            outcome,
            updates={
                "submitted_at": self._clock(),
                "withdrawal_attempts": 0,
                "pending_withdrawal": None,
            },
            actor=actor,
            audit_action=AuditAction.SUBMIT,
            correlation_id=correlation_id
        )

    def request_withdrawal(
        self,
        record_id: str,
        actor: Optional[ActorContext],
        reason: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> WorkflowResult:
        """Recall a submitted record, directly or via reviewer approval per module policy"""
        record, error = self._load_for_action(record_id, actor, PermissionAction.RECALL)
        if error:
            return self._fail(record_id, WorkflowAction.REQUEST_WITHDRAWAL, error)

        policy = self.config_repo.get_config(record.module_type)

        # Read the clock as late as possible so the window check is close to the write
        now = self._clock()
        outcome = self.transition_resolver.check_withdrawal(record, policy, now)
        if not outcome.ok:
            return self._fail(record_id, WorkflowAction.REQUEST_WITHDRAWAL, outcome.error)

        request = PendingWithdrawal(
            request_id=generate_withdrawal_request_id(),
            reason=reason,
            requested_by=actor.snapshot(),
            requested_at=now
        )
        updates: Dict[str, Any] = {"withdrawal_attempts": record.withdrawal_attempts + 1}
        if outcome.target == RecordStatus.PENDING_WITHDRAWAL:
            updates["pending_withdrawal"] = request.to_document()
            audit_action = AuditAction.REQUEST_WITHDRAWAL
        else:
            updates["pending_withdrawal"] = None
            audit_action = AuditAction.WITHDRAW

        return self._commit(
            record,
            outcome,
            updates=updates,
            actor=actor,
            audit_action=audit_action,
            details={
                **self._request_details(request),
                "require_approval": policy.require_approval,
                "max_attempts": policy.max_attempts,
            },
            correlation_id=correlation_id
        )

    def cancel_withdrawal(
        self,
        record_id: str,
        actor: Optional[ActorContext],
        correlation_id: Optional[str] = None
    ) -> WorkflowResult:
        """Withdraw a pending withdrawal request; the consumed attempt is not refunded"""
        record, error = self._load_for_action(record_id, actor, PermissionAction.RECALL)
        if error:
            return self._fail(record_id, WorkflowAction.CANCEL_WITHDRAWAL, error)

        outcome = self.transition_resolver.check_pending_withdrawal(record, WorkflowAction.CANCEL_WITHDRAWAL)
        if not outcome.ok:
            return self._fail(record_id, WorkflowAction.CANCEL_WITHDRAWAL, outcome.error)

        pending = record.pending_withdrawal
        if (
            pending is not None
            and pending.requested_by.user_id != actor.user_id
            and not self.permission_guard.has_global_scope(actor, record.module_type, PermissionAction.RECALL)
        ):
            return self._fail(record_id, WorkflowAction.CANCEL_WITHDRAWAL, PermissionDeniedError(
                "Only the requester or an administrator can cancel this withdrawal request",
                details={"requested_by": pending.requested_by.user_id}
            ))

        return self._commit(
            record,
            outcome,
            updates={"pending_withdrawal": None},
            actor=actor,
            audit_action=AuditAction.CANCEL_WITHDRAWAL,
            details=self._request_details(pending),
            correlation_id=correlation_id
        )

    def resolve_withdrawal(
        self,
        record_id: str,
        actor: Optional[ActorContext],
        decision: Decision,
        comment: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> WorkflowResult:
        """Reviewer approves (back to DRAFT) or rejects (back to SUBMITTED) a pending withdrawal"""
        if decision == Decision.APPROVE:
            action, audit_action = WorkflowAction.APPROVE_WITHDRAWAL, AuditAction.APPROVE_WITHDRAWAL
        else:
            action, audit_action = WorkflowAction.REJECT_WITHDRAWAL, AuditAction.REJECT_WITHDRAWAL

        record, error = self._load_for_action(record_id, actor, PermissionAction.APPROVE)
        if error:
            return self._fail(record_id, action, error)

        outcome = self.transition_resolver.check_pending_withdrawal(record, action)
        if not outcome.ok:
            return self._fail(record_id, action, outcome.error)

        pending = record.pending_withdrawal
        return self._commit(
            record,
            outcome,
            updates={"pending_withdrawal": None},
            actor=actor,
            audit_action=audit_action,
            details={
                "decision": decision.value,
                "comment": comment,
                **self._request_details(pending),
            },
            correlation_id=correlation_id
        )

    def review(
        self,
        record_id: str,
        actor: Optional[ActorContext],
        decision: Decision,
        remark: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> WorkflowResult:
        """Approve or reject a submitted record, storing the reviewer's remark"""
        if decision == Decision.APPROVE:
            action, audit_action = WorkflowAction.APPROVE, AuditAction.APPROVE
        else:
            action, audit_action = WorkflowAction.REJECT, AuditAction.REJECT

        record, error = self._load_for_action(record_id, actor, PermissionAction.AUDIT)
        if error:
            return self._fail(record_id, action, error)

        outcome = self.transition_resolver.check_review(record, action)
        if not outcome.ok:
            return self._fail(record_id, action, outcome.error)

        # Without a new remark the previous one stays on the record
        updates = {"remark": remark} if remark is not None else {}

        return self._commit(
            record,
            outcome,
            updates=updates,
            actor=actor,
            audit_action=audit_action,
            details={"decision": decision.value, "remark": remark},
            correlation_id=correlation_id
        )

    # =========================================================================
    # Pipeline helpers
    # =========================================================================

    def _load_for_action(
        self,
        record_id: str,
        actor: Optional[ActorContext],
        action: PermissionAction
    ) -> Tuple[Optional[FundRecord], Optional[DomainError]]:
        if actor is None:
            return None, AuthenticationError("A valid session is required")

        record = self.record_repo.get_record(record_id)
        if record is None:
            return None, RecordNotFoundError(
                f"Record {record_id} not found",
                details={"record_id": record_id}
            )

        if not self.permission_guard.can_act_on_record(actor, record, action):
            return None, PermissionDeniedError(
                f"You cannot {action.value} {record.module_type.value} record {record_id}",
                details={
                    "record_id": record_id,
                    "module_type": record.module_type.value,
                    "action": action.value
                }
            )

        return record, None

    def _commit(
        self,
        record: FundRecord,
        outcome: Outcome,
        updates: Dict[str, Any],
        actor: ActorContext,
        audit_action: AuditAction,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None
    ) -> WorkflowResult:
        """Compare-and-set the new status, then write the audit event"""
        try:
            updated = self.record_repo.update_record(
                record.record_id,
                {"status": outcome.target.value, **updates},
                expected_version=record.version,
                expected_status=record.status
            )
        except (ConcurrencyError, RecordNotFoundError) as e:
            return self._fail(record.record_id, audit_action, e)

        logger.info(
            f"Record {record.record_id}: {record.status.value} -> {updated.status.value}",
            extra={
                "record_id": record.record_id,
                "module_type": record.module_type.value,
                "actor_id": actor.user_id,
                "action": audit_action.value,
                "from_status": record.status.value,
                "to_status": updated.status.value
            }
        )

        audit_error = None
        try:
            self.audit_writer.write_transition(
                updated,
                audit_action,
                actor,
                before=record.status,
                details=details,
                correlation_id=correlation_id
            )
        except PyMongoError as e:
            audit_error = AuditError(
                "Transition committed but the audit entry could not be written",
                details={
                    "record_id": record.record_id,
                    "action": audit_action.value,
                    "cause": str(e)
                }
            )
            logger.error(
                f"Audit write failed for record {record.record_id}: {e}",
                exc_info=True,
                extra={
                    "record_id": record.record_id,
                    "action": audit_action.value,
                    "error_code": audit_error.error_code
                }
            )

        return WorkflowResult(record=updated, audit_error=audit_error)

    @staticmethod
    def _request_details(request: Optional[PendingWithdrawal]) -> Dict[str, Any]:
        """Request fields repeated on every audit event of one withdrawal request"""
        if request is None:
            return {"request_id": None, "requested_by": None, "reason": None}
        return {
            "request_id": request.request_id,
            "requested_by": request.requested_by.user_id,
            "requester": request.requested_by.model_dump(mode="json"),
            "requested_at": format_iso(request.requested_at),
            "reason": request.reason,
        }

    @staticmethod
    def _fail(record_id: str, action: Any, error: DomainError) -> WorkflowResult:
        logger.warning(
            f"{action.value} rejected for record {record_id}: {error.error_code} - {error.message}",
            extra={
                "record_id": record_id,
                "action": action.value,
                "error_code": error.error_code
            }
        )
        return WorkflowResult(error=error)

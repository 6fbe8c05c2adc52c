"""Record Service - Record creation, queries and workflow actions"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from ..domain.models import ActorContext, AuditEvent, FundRecord, Permission
from ..domain.enums import (
    Decision, ModuleType, PermissionAction, PermissionScope, RecordStatus
)
from ..domain.errors import PermissionDeniedError, ValidationError
from ..engine.engine import WorkflowEngine, WorkflowResult
from ..engine.permission_guard import PermissionGuard
from ..engine.audit_writer import AuditWriter
from ..repositories.record_repo import RecordRepository
from ..repositories.withdrawal_config_repo import WithdrawalConfigRepository
from ..repositories.audit_repo import AuditRepository
from ..utils.idgen import generate_record_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

CREATABLE_STATUSES = (RecordStatus.DRAFT, RecordStatus.UNFILLED)


@dataclass
class ActionOutcome:
    """A committed workflow action, plus any non-fatal problems"""
    record: FundRecord
    warnings: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class BatchItemOutcome:
    """Result for one record of a batch; exactly one of record / error is set"""
    record_id: str
    record: Optional[FundRecord] = None
    error: Optional[Dict[str, Any]] = None
    warnings: List[Dict[str, Any]] = field(default_factory=list)


class RecordService:
    """Service for fund records; workflow actions delegate to the engine"""

    def __init__(self, db: Database, clock: Callable[[], datetime] = utc_now):
        self.repo = RecordRepository(db)
        self.audit_repo = AuditRepository(db)
        self.permission_guard = PermissionGuard()
        self.audit_writer = AuditWriter(self.audit_repo)
        self.engine = WorkflowEngine(
            record_repo=self.repo,
            config_repo=WithdrawalConfigRepository(db),
            audit_writer=self.audit_writer,
            permission_guard=self.permission_guard,
            clock=clock
        )
        self._clock = clock

    # =========================================================================
    # Records
    # =========================================================================

    def create_record(
        self,
        module_type: ModuleType,
        actor: ActorContext,
        title: Optional[str] = None,
        amount: Optional[float] = None,
        year: Optional[int] = None,
        month: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
        status: RecordStatus = RecordStatus.DRAFT,
        correlation_id: Optional[str] = None
    ) -> FundRecord:
        """Create a record in DRAFT (or UNFILLED) owned by the actor"""
        if status not in CREATABLE_STATUSES:
            raise ValidationError(
                f"Records can only be created as {', '.join(s.value for s in CREATABLE_STATUSES)}",
                details={"status": status.value}
            )

        allowed = self.permission_guard.check_permission(
            actor,
            Permission(resource=module_type.value, action=PermissionAction.CREATE)
        )
        if not allowed:
            raise PermissionDeniedError(
                f"You cannot create {module_type.value} records",
                details={"module_type": module_type.value}
            )

        now = self._clock()
        record = FundRecord(
            record_id=generate_record_id(),
            module_type=module_type,
            status=status,
            title=title,
            amount=amount,
            year=year,
            month=month,
            data=data or {},
            owner_id=actor.user_id,
            organization_id=actor.organization_id,
            department_id=actor.department_id,
            created_at=now,
            updated_at=now,
            version=1
        )
        record = self.repo.create_record(record)

        # Creation is not a status transition; a lost audit entry here is only logged
        try:
            self.audit_writer.write_create_record(record, actor, correlation_id=correlation_id)
        except PyMongoError as e:
            logger.error(
                f"Audit write failed for new record {record.record_id}: {e}",
                exc_info=True,
                extra={"record_id": record.record_id, "error_code": "AUDIT_ERROR"}
            )

        return record

    def get_record(self, record_id: str, actor: ActorContext) -> FundRecord:
        record = self.repo.get_record_or_raise(record_id)
        if not self.permission_guard.can_act_on_record(actor, record, PermissionAction.READ):
            raise PermissionDeniedError(
                f"You cannot view record {record_id}",
                details={"record_id": record_id}
            )
        return record

    def list_records(
        self,
        actor: ActorContext,
        module_type: Optional[ModuleType] = None,
        status: Optional[RecordStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[FundRecord]:
        """Records the actor can read, most recently updated first"""
        query = self._visibility_filter(actor)
        records = self.repo.list_records(
            module_type=module_type,
            status=status,
            skip=skip,
            limit=limit,
            **query
        )
        return [
            r for r in records
            if self.permission_guard.check_permission(
                actor, Permission(resource=r.module_type.value, action=PermissionAction.READ), r
            )
        ]

    def count_records(
        self,
        actor: ActorContext,
        module_type: Optional[ModuleType] = None,
        status: Optional[RecordStatus] = None
    ) -> int:
        return self.repo.count_records(module_type=module_type, status=status, **self._visibility_filter(actor))

    def get_available_actions(self, record: FundRecord, actor: ActorContext) -> List[str]:
        return self.permission_guard.get_available_actions(actor, record)

    def get_audit_trail(
        self,
        record_id: str,
        actor: ActorContext,
        skip: int = 0,
        limit: int = 100
    ) -> List[AuditEvent]:
        """Audit events of a record, newest first"""
        self.get_record(record_id, actor)
        return self.audit_repo.get_events_for_target(record_id, skip=skip, limit=limit)

    def count_audit_events(self, record_id: str) -> int:
        return self.audit_repo.count_events_for_target(record_id)

    def _visibility_filter(self, actor: ActorContext) -> Dict[str, Any]:
        scope = self.permission_guard.widest_scope(actor, PermissionAction.READ)
        if scope == PermissionScope.ALL:
            return {}
        if scope == PermissionScope.ORGANIZATION and actor.organization_id:
            return {"organization_id": actor.organization_id}
        # Department and self scopes are narrowed to the actor's own records
        return {"owner_id": actor.user_id}

    # =========================================================================
    # Workflow actions
    # =========================================================================

    def submit(
        self,
        record_id: str,
        actor: Optional[ActorContext],
        correlation_id: Optional[str] = None
    ) -> ActionOutcome:
        return self._unwrap(self.engine.submit(record_id, actor, correlation_id=correlation_id))

    def submit_batch(
        self,
        record_ids: List[str],
        actor: Optional[ActorContext],
        correlation_id: Optional[str] = None
    ) -> List[BatchItemOutcome]:
        """Submit each record on its own; a failure does not stop the rest"""
        results = []
        for record_id in dict.fromkeys(record_ids):
            result = self.engine.submit(record_id, actor, correlation_id=correlation_id)
            if result.ok:
                outcome = self._unwrap(result)
                results.append(BatchItemOutcome(record_id, record=outcome.record, warnings=outcome.warnings))
            else:
                results.append(BatchItemOutcome(record_id, error=result.error.to_dict()["error"]))

        failed = sum(1 for r in results if r.error is not None)
        logger.info(
            f"Batch submit: {len(results) - failed} submitted, {failed} failed",
            extra={"actor_id": actor.user_id if actor else None, "action": "SUBMIT"}
        )
        return results

    def request_withdrawal(
        self,
        record_id: str,
        actor: Optional[ActorContext],
        reason: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> ActionOutcome:
        return self._unwrap(self.engine.request_withdrawal(
            record_id, actor, reason=reason, correlation_id=correlation_id
        ))

    def cancel_withdrawal(
        self,
        record_id: str,
        actor: Optional[ActorContext],
        correlation_id: Optional[str] = None
    ) -> ActionOutcome:
        return self._unwrap(self.engine.cancel_withdrawal(record_id, actor, correlation_id=correlation_id))

    def resolve_withdrawal(
        self,
        record_id: str,
        actor: Optional[ActorContext],
        decision: Decision,
        comment: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> ActionOutcome:
        return self._unwrap(self.engine.resolve_withdrawal(
            record_id, actor, decision, comment=comment, correlation_id=correlation_id
        ))

    def review(
        self,
        record_id: str,
        actor: Optional[ActorContext],
        decision: Decision,
        remark: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> ActionOutcome:
        return self._unwrap(self.engine.review(
            record_id, actor, decision, remark=remark, correlation_id=correlation_id
        ))

    @staticmethod
    def _unwrap(result: WorkflowResult) -> ActionOutcome:
        record = result.unwrap()
        warnings = []
        if result.audit_error is not None:
            warnings.append(result.audit_error.to_dict()["error"])
        return ActionOutcome(record=record, warnings=warnings)

"""Audit Writer - Append-only audit events"""
from typing import Any, Dict, Optional

from ..domain.models import AuditEvent, ActorContext, FundRecord, WithdrawalConfig
from ..domain.enums import AuditAction, AuditTargetType, RecordStatus
from ..repositories.audit_repo import AuditRepository
from ..utils.idgen import generate_audit_event_id
from ..utils.time import utc_now


class AuditWriter:
    """
    Write audit events (append-only)

    Every committed record transition and every policy change produces one
    event. Storage errors propagate to the caller, which decides whether
    they are fatal.
    """

    def __init__(self, repo: AuditRepository):
        self.repo = repo

    def write_event(
        self,
        target_id: str,
        action: AuditAction,
        actor: ActorContext,
        target_type: AuditTargetType = AuditTargetType.RECORD,
        before: Optional[str] = None,
        after: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None
    ) -> AuditEvent:
        """Write a single audit event"""
        event = AuditEvent(
            audit_event_id=generate_audit_event_id(),
            actor=actor.snapshot(),
            action=action,
            target_type=target_type,
            target_id=target_id,
            before=before,
            after=after,
            timestamp=utc_now(),
            details=details or {},
            correlation_id=correlation_id
        )
        return self.repo.create_event(event)

    def write_transition(
        self,
        record: FundRecord,
        action: AuditAction,
        actor: ActorContext,
        before: RecordStatus,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None
    ) -> AuditEvent:
        """Write a record status change; `record` is the committed state"""
        return self.write_event(
            target_id=record.record_id,
            action=action,
            actor=actor,
            before=before.value,
            after=record.status.value,
            details={
                "module_type": record.module_type.value,
                "withdrawal_attempts": record.withdrawal_attempts,
                "version": record.version,
                **(details or {})
            },
            correlation_id=correlation_id
        )

    def write_create_record(
        self,
        record: FundRecord,
        actor: ActorContext,
        correlation_id: Optional[str] = None
    ) -> AuditEvent:
        return self.write_event(
            target_id=record.record_id,
            action=AuditAction.CREATE_RECORD,
            actor=actor,
            after=record.status.value,
            details={"module_type": record.module_type.value},
            correlation_id=correlation_id
        )

    def write_config_change(
        self,
        config: WithdrawalConfig,
        actor: ActorContext,
        previous: Optional[WithdrawalConfig] = None,
        deleted: bool = False,
        correlation_id: Optional[str] = None
    ) -> AuditEvent:
        """Write a withdrawal policy update or deletion"""
        return self.write_event(
            target_id=config.module_type.value,
            target_type=AuditTargetType.WITHDRAWAL_CONFIG,
            action=AuditAction.DELETE_WITHDRAWAL_CONFIG if deleted else AuditAction.UPDATE_WITHDRAWAL_CONFIG,
            actor=actor,
            details={
                "previous": previous.model_dump(mode="json", exclude={"updated_at"}) if previous else None,
                "current": None if deleted else config.model_dump(mode="json", exclude={"updated_at"}),
            },
            correlation_id=correlation_id
        )

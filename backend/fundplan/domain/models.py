"""Domain Models - Pydantic schemas for all entities"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict, field_validator

from .enums import (
    RecordStatus, ModuleType, Role, PermissionAction, PermissionScope,
    AuditAction, AuditTargetType, Decision, WithdrawalRequestStatus
)
from ..utils.time import ensure_utc


# ============================================================================
# User & Identity Snapshots
# ============================================================================

class UserSnapshot(BaseModel):
    """Snapshot of user identity at a point in time"""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., description="User ID")
    email: EmailStr = Field(..., description="User email")
    name: str = Field(..., description="User display name")
    role_at_time: Optional[Role] = Field(None, description="Role when snapshot was taken")


class ActorContext(BaseModel):
    """Current actor context resolved from the session token"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    user_id: str = Field(..., alias="id", description="User ID")
    email: EmailStr = Field(..., description="User email")
    name: str = Field(..., description="User display name")
    role: Role = Field(..., description="Assigned role")
    organization_id: Optional[str] = Field(None, alias="organizationId")
    department_id: Optional[str] = Field(None, alias="departmentId")

    def snapshot(self) -> UserSnapshot:
        return UserSnapshot(
            user_id=self.user_id,
            email=self.email,
            name=self.name,
            role_at_time=self.role
        )


class Permission(BaseModel):
    """A single grant: resource + action + how far it reaches"""
    model_config = ConfigDict(frozen=True)

    resource: str = Field(..., description="Module type, 'record' for every module, or 'system'")
    action: PermissionAction
    scope: PermissionScope = PermissionScope.SELF


# ============================================================================
# Fund Records
# ============================================================================

class PendingWithdrawal(BaseModel):
    """Open withdrawal request carried on a PENDING_WITHDRAWAL record"""
    model_config = ConfigDict(extra="ignore")

    request_id: Optional[str] = None
    reason: Optional[str] = None
    requested_by: UserSnapshot
    requested_at: datetime

    @field_validator("requested_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump()
        if self.requested_by.role_at_time:
            doc["requested_by"]["role_at_time"] = self.requested_by.role_at_time.value
        return doc


class FundRecord(BaseModel):
    """Prediction/actual record under workflow control"""
    model_config = ConfigDict(extra="ignore")  # Mongo documents may carry module-specific fields

    record_id: str = Field(..., description="Unique record ID")
    module_type: ModuleType
    status: RecordStatus = Field(default=RecordStatus.DRAFT)
    title: Optional[str] = None
    amount: Optional[float] = None
    year: Optional[int] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)
    data: Dict[str, Any] = Field(default_factory=dict, description="Owning-module payload")
    owner_id: str = Field(..., description="User who created the record")
    organization_id: Optional[str] = None
    department_id: Optional[str] = None
    submitted_at: Optional[datetime] = Field(None, description="Most recent submission time")
    withdrawal_attempts: int = Field(default=0, ge=0, description="Withdrawal requests in current submission cycle")
    remark: Optional[str] = None
    pending_withdrawal: Optional[PendingWithdrawal] = None
    created_at: datetime
    updated_at: datetime
    version: int = Field(default=1, description="Optimistic concurrency version")

    @field_validator("submitted_at", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    def to_document(self) -> Dict[str, Any]:
        """Mongo document; enums stored by value, datetimes kept native for sorting"""
        doc = self.model_dump()
        doc["status"] = self.status.value
        doc["module_type"] = self.module_type.value
        if self.pending_withdrawal:
            doc["pending_withdrawal"] = self.pending_withdrawal.to_document()
        return doc


# ============================================================================
# Withdrawal Policy
# ============================================================================

class WithdrawalConfig(BaseModel):
    """Per-module withdrawal policy; one row per module type"""
    model_config = ConfigDict(extra="ignore")

    module_type: ModuleType
    allowed_statuses: List[RecordStatus] = Field(
        default_factory=lambda: [RecordStatus.SUBMITTED],
        description="Statuses from which a withdrawal may be requested"
    )
    time_limit_hours: float = Field(default=0, ge=0, description="0 means no time limit")
    max_attempts: int = Field(..., ge=1, description="Withdrawal requests allowed per submission cycle")
    require_approval: bool = Field(default=True)
    allow_resubmit_after_rejection: bool = Field(default=True)
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    @field_validator("allowed_statuses", mode="before")
    @classmethod
    def _parse_statuses(cls, value: Any) -> Any:
        # Persisted as a JSON-serialized list of status names
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise ValueError(f"allowed_statuses is not a JSON list: {e}") from e
        if not isinstance(value, list):
            raise ValueError("allowed_statuses must be a list of status names")
        return value

    def allows(self, status: RecordStatus) -> bool:
        return status in self.allowed_statuses

    def to_document(self) -> Dict[str, Any]:
        return {
            "module_type": self.module_type.value,
            "allowed_statuses": json.dumps([s.value for s in self.allowed_statuses]),
            "time_limit_hours": self.time_limit_hours,
            "max_attempts": self.max_attempts,
            "require_approval": self.require_approval,
            "allow_resubmit_after_rejection": self.allow_resubmit_after_rejection,
            "updated_at": self.updated_at,
            "updated_by": self.updated_by,
        }


# ============================================================================
# Audit
# ============================================================================

class AuditEvent(BaseModel):
    """Audit event (append-only)"""
    model_config = ConfigDict(extra="forbid")

    audit_event_id: str
    actor: UserSnapshot
    action: AuditAction
    target_type: AuditTargetType = AuditTargetType.RECORD
    target_id: str
    before: Optional[str] = Field(None, description="Status before the change")
    after: Optional[str] = Field(None, description="Status after the change")
    timestamp: datetime
    details: Dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = None


class WithdrawalRequestView(BaseModel):
    """A withdrawal request and its outcome, rebuilt from the audit trail"""
    request_id: str
    record_id: str
    module_type: Optional[ModuleType] = None
    status: WithdrawalRequestStatus
    reason: Optional[str] = None
    requested_by: Optional[UserSnapshot] = None
    requested_at: Optional[datetime] = None
    resolved_by: Optional[UserSnapshot] = None
    resolved_at: Optional[datetime] = None
    decision: Optional[Decision] = None
    comment: Optional[str] = None

    @field_validator("requested_at", "resolved_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value else value

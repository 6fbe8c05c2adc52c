"""
Record and Withdrawal Config API Schemas

Request/response models shared by the record and config routes.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from ...domain.enums import Decision, ModuleType, RecordStatus


# =============================================================================
# Records
# =============================================================================

class CreateRecordRequest(BaseModel):
    """Request to create a record in the owning module"""
    module_type: ModuleType
    title: Optional[str] = Field(None, max_length=200)
    amount: Optional[float] = None
    year: Optional[int] = Field(None, ge=2000, le=2100)
    month: Optional[int] = Field(None, ge=1, le=12)
    data: Dict[str, Any] = Field(default_factory=dict)
    status: RecordStatus = RecordStatus.DRAFT


class RecordResponse(BaseModel):
    """Record plus the actions the caller may take on it"""
    record: Dict[str, Any]
    available_actions: List[str] = Field(default_factory=list)


class RecordListResponse(BaseModel):
    items: List[Dict[str, Any]]
    page: int
    page_size: int
    total: int


class WithdrawalRequest(BaseModel):
    """Request to withdraw a submitted record; a reason is mandatory"""
    model_config = ConfigDict(str_strip_whitespace=True)

    reason: str = Field(..., min_length=1, max_length=2000)


class ResolveWithdrawalRequest(BaseModel):
    """Reviewer decision on a pending withdrawal"""
    decision: Decision
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewRequest(BaseModel):
    """Reviewer decision on a submitted record"""
    decision: Decision
    remark: Optional[str] = Field(None, max_length=2000)


class ActionResponse(BaseModel):
    """Result of a workflow action"""
    record: Dict[str, Any]
    warnings: List[Dict[str, Any]] = Field(default_factory=list)


class AuditTrailResponse(BaseModel):
    items: List[Dict[str, Any]]
    total: int


class SubmitBatchRequest(BaseModel):
    record_ids: List[str] = Field(..., min_length=1, max_length=100)


class BatchItemResponse(BaseModel):
    record_id: str
    ok: bool
    record: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None
    warnings: List[Dict[str, Any]] = Field(default_factory=list)


class SubmitBatchResponse(BaseModel):
    """Per-record results, in request order"""
    results: List[BatchItemResponse]
    submitted: int
    failed: int


# =============================================================================
# Withdrawal configs
# =============================================================================

class WithdrawalConfigRequest(BaseModel):
    """Policy body; the module comes from the path"""
    allowed_statuses: List[RecordStatus] = Field(..., min_length=1)
    time_limit_hours: float = Field(0, ge=0, description="0 means no time limit")
    max_attempts: int = Field(..., ge=1)
    require_approval: bool = True
    allow_resubmit_after_rejection: bool = True


class WithdrawalConfigListResponse(BaseModel):
    items: List[Dict[str, Any]]


class WithdrawalConfigResponse(BaseModel):
    """Saved or removed policy; warnings carry a failed audit write"""
    config: Dict[str, Any]
    warnings: List[Dict[str, Any]] = Field(default_factory=list)


# =============================================================================
# Withdrawal requests
# =============================================================================

class WithdrawalRequestListResponse(BaseModel):
    items: List[Dict[str, Any]]
    page: int
    page_size: int
    total: int

"""Record API Routes - Record queries and workflow actions"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from ..deps import get_current_user_dep, get_correlation_id_dep, get_record_service
from ...domain.models import ActorContext
from ...domain.enums import ModuleType, RecordStatus
from ...services.record_service import RecordService, ActionOutcome
from ...utils.logger import get_logger
from .schemas import (
    CreateRecordRequest, RecordResponse, RecordListResponse, WithdrawalRequest,
    ResolveWithdrawalRequest, ReviewRequest, ActionResponse, AuditTrailResponse,
    SubmitBatchRequest, SubmitBatchResponse, BatchItemResponse
)

logger = get_logger(__name__)
router = APIRouter()


def _action_response(outcome: ActionOutcome) -> ActionResponse:
    return ActionResponse(
        record=outcome.record.model_dump(mode="json"),
        warnings=outcome.warnings
    )


# =============================================================================
# Records
# =============================================================================

@router.post("", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
async def create_record(
    request: CreateRecordRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RecordService = Depends(get_record_service)
):
    """Create a DRAFT (or UNFILLED) record owned by the caller"""
    record = service.create_record(
        module_type=request.module_type,
        actor=actor,
        title=request.title,
        amount=request.amount,
        year=request.year,
        month=request.month,
        data=request.data,
        status=request.status,
        correlation_id=correlation_id
    )
    return RecordResponse(
        record=record.model_dump(mode="json"),
        available_actions=service.get_available_actions(record, actor)
    )


@router.get("", response_model=RecordListResponse)
async def list_records(
    module_type: Optional[ModuleType] = Query(None),
    status: Optional[RecordStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: ActorContext = Depends(get_current_user_dep),
    service: RecordService = Depends(get_record_service)
):
    """
    List records visible to the caller

    Reporters see their own records; organization-scoped roles see their
    organization; administrators see everything.
    """
    skip = (page - 1) * page_size
    records = service.list_records(actor, module_type=module_type, status=status, skip=skip, limit=page_size)
    total = service.count_records(actor, module_type=module_type, status=status)

    return RecordListResponse(
        items=[r.model_dump(mode="json") for r in records],
        page=page,
        page_size=page_size,
        total=total
    )


@router.get("/{record_id}", response_model=RecordResponse)
async def get_record(
    record_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    service: RecordService = Depends(get_record_service)
):
    record = service.get_record(record_id, actor)
    return RecordResponse(
        record=record.model_dump(mode="json"),
        available_actions=service.get_available_actions(record, actor)
    )


@router.get("/{record_id}/audit", response_model=AuditTrailResponse)
async def get_audit_trail(
    record_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    actor: ActorContext = Depends(get_current_user_dep),
    service: RecordService = Depends(get_record_service)
):
    """Audit events of a record, newest first"""
    events = service.get_audit_trail(record_id, actor, skip=skip, limit=limit)
    return AuditTrailResponse(
        items=[e.model_dump(mode="json") for e in events],
        total=service.count_audit_events(record_id)
    )


# =============================================================================
# Workflow actions
# =============================================================================

@router.post("/submit-batch", response_model=SubmitBatchResponse)
async def submit_batch(
    request: SubmitBatchRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RecordService = Depends(get_record_service)
):
    """
    Submit several records, each on its own.

    Always 200; every record reports its own success or error.
    """
    results = [
        BatchItemResponse(
            record_id=item.record_id,
            ok=item.error is None,
            record=item.record.model_dump(mode="json") if item.record else None,
            error=item.error,
            warnings=item.warnings
        )
        for item in service.submit_batch(request.record_ids, actor, correlation_id=correlation_id)
    ]
    submitted = sum(1 for r in results if r.ok)
    return SubmitBatchResponse(results=results, submitted=submitted, failed=len(results) - submitted)


@router.post("/{record_id}/submit", response_model=ActionResponse)
async def submit_record(
    record_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RecordService = Depends(get_record_service)
):
    """Submit a DRAFT/UNFILLED record, or resubmit a REJECTED one where the module allows it"""
    return _action_response(service.submit(record_id, actor, correlation_id=correlation_id))


@router.post("/{record_id}/withdrawal", response_model=ActionResponse)
async def request_withdrawal(
    record_id: str,
    request: WithdrawalRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RecordService = Depends(get_record_service)
):
    """
    Withdraw a submitted record.

    Depending on the module's policy the record returns to DRAFT at once or
    waits in PENDING_WITHDRAWAL for a reviewer.
    """
    return _action_response(service.request_withdrawal(
        record_id, actor, reason=request.reason, correlation_id=correlation_id
    ))


@router.post("/{record_id}/withdrawal/cancel", response_model=ActionResponse)
async def cancel_withdrawal(
    record_id: str,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RecordService = Depends(get_record_service)
):
    """Cancel a pending withdrawal; the attempt stays counted"""
    return _action_response(service.cancel_withdrawal(record_id, actor, correlation_id=correlation_id))


@router.post("/{record_id}/withdrawal/resolve", response_model=ActionResponse)
async def resolve_withdrawal(
    record_id: str,
    request: ResolveWithdrawalRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RecordService = Depends(get_record_service)
):
    return _action_response(service.resolve_withdrawal(
        record_id, actor, request.decision, comment=request.comment, correlation_id=correlation_id
    ))


@router.post("/{record_id}/review", response_model=ActionResponse)
async def review_record(
    record_id: str,
    request: ReviewRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RecordService = Depends(get_record_service)
):
    return _action_response(service.review(
        record_id, actor, request.decision, remark=request.remark, correlation_id=correlation_id
    ))

"""Withdrawal Request API Routes - History of withdrawal requests"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from ..deps import get_current_user_dep, get_withdrawal_request_service
from ...domain.models import ActorContext
from ...domain.enums import ModuleType, WithdrawalRequestStatus
from ...services.withdrawal_request_service import WithdrawalRequestService
from .schemas import WithdrawalRequestListResponse

router = APIRouter()


@router.get("", response_model=WithdrawalRequestListResponse)
async def list_withdrawal_requests(
    status: Optional[WithdrawalRequestStatus] = Query(None),
    module_type: Optional[ModuleType] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: ActorContext = Depends(get_current_user_dep),
    service: WithdrawalRequestService = Depends(get_withdrawal_request_service)
):
    """
    List withdrawal requests with their outcome

    Administrators see every request; everyone else sees their own.
    """
    skip = (page - 1) * page_size
    requests, total = service.list_requests(
        actor, status=status, module_type=module_type, skip=skip, limit=page_size
    )
    return WithdrawalRequestListResponse(
        items=[r.model_dump(mode="json") for r in requests],
        page=page,
        page_size=page_size,
        total=total
    )

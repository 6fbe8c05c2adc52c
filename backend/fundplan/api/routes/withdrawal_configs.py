"""Withdrawal Config API Routes - Per-module withdrawal policy administration"""
from fastapi import APIRouter, Depends

from ..deps import get_current_user_dep, get_correlation_id_dep, get_withdrawal_config_service
from ...domain.models import ActorContext, WithdrawalConfig
from ...domain.enums import ModuleType
from ...services.withdrawal_config_service import WithdrawalConfigService, ConfigChange
from .schemas import WithdrawalConfigRequest, WithdrawalConfigListResponse, WithdrawalConfigResponse

router = APIRouter()


def _change_response(change: ConfigChange) -> WithdrawalConfigResponse:
    return WithdrawalConfigResponse(
        config=change.config.model_dump(mode="json"),
        warnings=change.warnings
    )


@router.get("", response_model=WithdrawalConfigListResponse)
async def list_configs(
    actor: ActorContext = Depends(get_current_user_dep),
    service: WithdrawalConfigService = Depends(get_withdrawal_config_service)
):
    return WithdrawalConfigListResponse(
        items=[c.model_dump(mode="json") for c in service.list_configs()]
    )


@router.get("/{module_type}")
async def get_config(
    module_type: ModuleType,
    actor: ActorContext = Depends(get_current_user_dep),
    service: WithdrawalConfigService = Depends(get_withdrawal_config_service)
):
    return service.get_config(module_type).model_dump(mode="json")


@router.put("/{module_type}", response_model=WithdrawalConfigResponse)
async def upsert_config(
    module_type: ModuleType,
    request: WithdrawalConfigRequest,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WithdrawalConfigService = Depends(get_withdrawal_config_service)
):
    """
    Create or replace the withdrawal policy of a module (administrators only)
    """
    config = WithdrawalConfig(module_type=module_type, **request.model_dump())
    return _change_response(service.upsert_config(config, actor, correlation_id=correlation_id))


@router.delete("/{module_type}", response_model=WithdrawalConfigResponse)
async def delete_config(
    module_type: ModuleType,
    actor: ActorContext = Depends(get_current_user_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: WithdrawalConfigService = Depends(get_withdrawal_config_service)
):
    """Remove a module's policy; withdrawals for that module are then refused"""
    return _change_response(service.delete_config(module_type, actor, correlation_id=correlation_id))

"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Depends, Header, HTTPException, Request, status
from pymongo.database import Database

from ..domain.models import ActorContext
from ..domain.errors import AuthenticationError
from ..services.record_service import RecordService
from ..services.withdrawal_config_service import WithdrawalConfigService
from ..services.withdrawal_request_service import WithdrawalRequestService
from ..utils.jwt import parse_session
from ..utils.logger import set_correlation_id, get_correlation_id
from ..utils.idgen import generate_correlation_id


async def get_correlation_id_dep(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> str:
    """
    Get or generate correlation ID for request tracing

    The middleware has usually set one already; reuse it so the response
    header and the audit entries agree.
    """
    correlation_id = x_correlation_id or get_correlation_id() or generate_correlation_id()
    set_correlation_id(correlation_id)
    return correlation_id


async def get_current_user_dep(
    authorization: Optional[str] = Header(None)
) -> ActorContext:
    """
    Dependency to get current user from Authorization header

    Raises:
        HTTPException: 401 if token is invalid or missing
    """
    try:
        actor = parse_session(authorization)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.to_dict(),
            headers={"WWW-Authenticate": "Bearer"}
        )

    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=AuthenticationError("Authorization header is missing").to_dict(),
            headers={"WWW-Authenticate": "Bearer"}
        )
    return actor


def get_db(request: Request) -> Database:
    """Database handle owned by the application (see main.lifespan)"""
    return request.app.state.db


def get_record_service(db: Database = Depends(get_db)) -> RecordService:
    return RecordService(db)


def get_withdrawal_config_service(db: Database = Depends(get_db)) -> WithdrawalConfigService:
    return WithdrawalConfigService(db)


def get_withdrawal_request_service(db: Database = Depends(get_db)) -> WithdrawalRequestService:
    return WithdrawalRequestService(db)

"""API Routes module"""
from fastapi import APIRouter

from .records import router as records_router
from .withdrawal_configs import router as withdrawal_configs_router
from .withdrawal_requests import router as withdrawal_requests_router

# Main API router
api_router = APIRouter()

api_router.include_router(records_router, prefix="/records", tags=["Records"])
api_router.include_router(withdrawal_configs_router, prefix="/withdrawal-configs", tags=["Withdrawal Config"])
api_router.include_router(withdrawal_requests_router, prefix="/withdrawal-requests", tags=["Withdrawal Requests"])

__all__ = ["api_router"]

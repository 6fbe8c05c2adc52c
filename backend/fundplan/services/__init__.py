"""Service modules - Business logic layer"""
from .record_service import RecordService, ActionOutcome, BatchItemOutcome
from .withdrawal_config_service import WithdrawalConfigService, ConfigChange
from .withdrawal_request_service import WithdrawalRequestService

__all__ = [
    "RecordService",
    "ActionOutcome",
    "BatchItemOutcome",
    "WithdrawalConfigService",
    "ConfigChange",
    "WithdrawalRequestService",
]

"""Repository modules - Data access layer"""
from .mongo_client import create_client, create_indexes, health_check
from .record_repo import RecordRepository
from .withdrawal_config_repo import WithdrawalConfigRepository
from .audit_repo import AuditRepository

__all__ = [
    "create_client",
    "create_indexes",
    "health_check",
    "RecordRepository",
    "WithdrawalConfigRepository",
    "AuditRepository",
]

"""Domain Enumerations - All status and type definitions"""
from enum import Enum


class RecordStatus(str, Enum):
    """Lifecycle status of a fund record"""
    DRAFT = "DRAFT"
    UNFILLED = "UNFILLED"
    SUBMITTED = "SUBMITTED"
    PENDING_WITHDRAWAL = "PENDING_WITHDRAWAL"  # Withdrawal requested, waiting for a reviewer
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ModuleType(str, Enum):
    """Reporting module a record belongs to; selects the withdrawal policy"""
    PREDICT = "predict"
    ACTUAL_USER = "actual_user"
    ACTUAL_FIN = "actual_fin"
    AUDIT = "audit"


class WorkflowAction(str, Enum):
    """Events that drive record transitions"""
    SUBMIT = "SUBMIT"
    REQUEST_WITHDRAWAL = "REQUEST_WITHDRAWAL"  # Policy requires reviewer approval
    WITHDRAW = "WITHDRAW"  # Policy allows immediate withdrawal
    CANCEL_WITHDRAWAL = "CANCEL_WITHDRAWAL"
    APPROVE_WITHDRAWAL = "APPROVE_WITHDRAWAL"
    REJECT_WITHDRAWAL = "REJECT_WITHDRAWAL"
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class Decision(str, Enum):
    """Reviewer decision for withdrawals and reviews"""
    APPROVE = "approve"
    REJECT = "reject"


class Role(str, Enum):
    """User roles"""
    ADMIN = "ADMIN"
    REPORTER = "REPORTER"
    FINANCE = "FINANCE"
    AUDITOR = "AUDITOR"
    OBSERVER = "OBSERVER"


class PermissionAction(str, Enum):
    """Actions checked by the permission guard"""
    CREATE = "create"
    READ = "read"
    SUBMIT = "submit"
    RECALL = "recall"
    APPROVE = "approve"
    AUDIT = "audit"
    CONFIGURE = "configure"


class PermissionScope(str, Enum):
    """How far a granted permission reaches"""
    ALL = "all"
    ORGANIZATION = "organization"
    DEPARTMENT = "department"
    SELF = "self"


class AuditAction(str, Enum):
    """Types of audit events"""
    CREATE_RECORD = "CREATE_RECORD"
    SUBMIT = "SUBMIT"
    REQUEST_WITHDRAWAL = "REQUEST_WITHDRAWAL"
    WITHDRAW = "WITHDRAW"
    CANCEL_WITHDRAWAL = "CANCEL_WITHDRAWAL"
    APPROVE_WITHDRAWAL = "APPROVE_WITHDRAWAL"
    REJECT_WITHDRAWAL = "REJECT_WITHDRAWAL"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    UPDATE_WITHDRAWAL_CONFIG = "UPDATE_WITHDRAWAL_CONFIG"
    DELETE_WITHDRAWAL_CONFIG = "DELETE_WITHDRAWAL_CONFIG"


class AuditTargetType(str, Enum):
    """What an audit event points at"""
    RECORD = "record"
    WITHDRAWAL_CONFIG = "withdrawal_config"


class WithdrawalRequestStatus(str, Enum):
    """Where a withdrawal request ended up"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    WITHDRAWN = "WITHDRAWN"  # no approval was required

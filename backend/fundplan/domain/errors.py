"""Domain Errors - Centralized Exception Hierarchy

Errors are raised at the repository and HTTP boundaries. The workflow engine
returns them as values inside a WorkflowResult instead of raising.
"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400
    retryable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
                "retryable": self.retryable
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Session missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class PermissionDeniedError(DomainError):
    """Actor lacks permission for action"""
    error_code = "PERMISSION_DENIED"
    http_status = 403


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class RecordNotFoundError(NotFoundError):
    """Fund record not found"""
    error_code = "RECORD_NOT_FOUND"


class ConfigNotFoundError(NotFoundError):
    """Withdrawal config not found (admin lookups only)"""
    error_code = "CONFIG_NOT_FOUND"


# Workflow rule failures
class InvalidTransitionError(DomainError):
    """Operation is not legal from the record's current status"""
    error_code = "INVALID_TRANSITION"
    http_status = 409


class InvalidStateError(DomainError):
    """Status precondition of the operation is not met"""
    error_code = "INVALID_STATE"
    http_status = 409


class NotWithdrawableError(DomainError):
    """Record status is not in the policy's allowed set"""
    error_code = "NOT_WITHDRAWABLE"
    http_status = 400


class WithdrawalWindowExpiredError(DomainError):
    """Time limit since submission has passed"""
    error_code = "WITHDRAWAL_WINDOW_EXPIRED"
    http_status = 400


class WithdrawalAttemptsExceededError(DomainError):
    """Attempt budget for the current submission cycle is spent"""
    error_code = "WITHDRAWAL_ATTEMPTS_EXCEEDED"
    http_status = 400


class PolicyNotConfiguredError(DomainError):
    """No withdrawal policy exists for the module; withdrawal is disabled"""
    error_code = "POLICY_NOT_CONFIGURED"
    http_status = 400


# Conflict Errors
class ConcurrencyError(DomainError):
    """Record changed between check and commit"""
    error_code = "CONCURRENT_MODIFICATION"
    http_status = 409
    retryable = True


# Audit
class AuditError(DomainError):
    """Audit entry could not be written; the state change stands"""
    error_code = "AUDIT_ERROR"
    http_status = 500

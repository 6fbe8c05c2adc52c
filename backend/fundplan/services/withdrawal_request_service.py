"""
Withdrawal Request Service - Listing of withdrawal requests and their outcomes

An open request lives on its record only while it is pending. The audit
trail keeps the whole history: every withdrawal event carries the request's
id, requester, time and reason, so a request is the opening event
(REQUEST_WITHDRAWAL or WITHDRAW) joined with at most one closing event
(CANCEL_WITHDRAWAL, APPROVE_WITHDRAWAL or REJECT_WITHDRAWAL).
"""
from typing import Dict, List, Optional, Tuple

from pymongo.database import Database

from ..domain.models import ActorContext, AuditEvent, WithdrawalRequestView
from ..domain.enums import (
    AuditAction, ModuleType, PermissionAction, PermissionScope, WithdrawalRequestStatus
)
from ..engine.permission_guard import PermissionGuard
from ..repositories.audit_repo import AuditRepository
from ..utils.time import parse_iso
from ..utils.logger import get_logger

logger = get_logger(__name__)

OPENING_ACTIONS = [AuditAction.REQUEST_WITHDRAWAL, AuditAction.WITHDRAW]

CLOSING_STATUS: Dict[AuditAction, WithdrawalRequestStatus] = {
    AuditAction.CANCEL_WITHDRAWAL: WithdrawalRequestStatus.CANCELLED,
    AuditAction.APPROVE_WITHDRAWAL: WithdrawalRequestStatus.APPROVED,
    AuditAction.REJECT_WITHDRAWAL: WithdrawalRequestStatus.REJECTED,
}


class WithdrawalRequestService:
    """
    Service for listing withdrawal requests

    Actors whose approve grant reaches everything (administrators) see every
    request; everyone else sees the requests they made.
    """

    def __init__(self, db: Database):
        self.audit_repo = AuditRepository(db)
        self.permission_guard = PermissionGuard()

    def list_requests(
        self,
        actor: ActorContext,
        status: Optional[WithdrawalRequestStatus] = None,
        module_type: Optional[ModuleType] = None,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[WithdrawalRequestView], int]:
        """Return one page of requests, newest first, and the total matching"""
        requested_by = self._requester_filter(actor)
        exclude: Optional[List[str]] = None

        if status is None:
            actions = OPENING_ACTIONS
        elif status == WithdrawalRequestStatus.PENDING:
            actions = [AuditAction.REQUEST_WITHDRAWAL]
            exclude = self.audit_repo.get_request_ids(
                list(CLOSING_STATUS), requested_by=requested_by, module_type=module_type
            )
        elif status == WithdrawalRequestStatus.WITHDRAWN:
            actions = [AuditAction.WITHDRAW]
        else:
            actions = [action for action, closed_as in CLOSING_STATUS.items() if closed_as == status]

        events = self.audit_repo.find_request_events(
            actions,
            requested_by=requested_by,
            module_type=module_type,
            exclude_request_ids=exclude,
            skip=skip,
            limit=limit
        )
        total = self.audit_repo.count_request_events(
            actions, requested_by=requested_by, module_type=module_type, exclude_request_ids=exclude
        )

        closings = {}
        if status is None:
            closings = self._closing_events(events)

        logger.debug(
            f"Listed {len(events)} of {total} withdrawal requests",
            extra={"actor_id": actor.user_id, "status": status.value if status else None}
        )
        return [self._to_view(e, closings.get(e.details["request_id"])) for e in events], total

    def _requester_filter(self, actor: ActorContext) -> Optional[str]:
        if self.permission_guard.widest_scope(actor, PermissionAction.APPROVE) == PermissionScope.ALL:
            return None
        return actor.user_id

    def _closing_events(self, events: List[AuditEvent]) -> Dict[str, AuditEvent]:
        open_ids = [e.details["request_id"] for e in events if e.action == AuditAction.REQUEST_WITHDRAWAL]
        if not open_ids:
            return {}

        closings = self.audit_repo.find_request_events(
            list(CLOSING_STATUS), request_ids=open_ids, limit=len(open_ids)
        )
        return {e.details["request_id"]: e for e in closings}

    @staticmethod
    def _to_view(event: AuditEvent, closing: Optional[AuditEvent]) -> WithdrawalRequestView:
        if event.action in CLOSING_STATUS:
            closing = event

        if event.action == AuditAction.WITHDRAW:
            status = WithdrawalRequestStatus.WITHDRAWN
        elif closing is not None:
            status = CLOSING_STATUS[closing.action]
        else:
            status = WithdrawalRequestStatus.PENDING

        details = event.details
        requested_at = details.get("requested_at")

        return WithdrawalRequestView(
            request_id=details["request_id"],
            record_id=event.target_id,
            module_type=details.get("module_type"),
            status=status,
            reason=details.get("reason"),
            requested_by=details.get("requester"),
            requested_at=parse_iso(requested_at) if requested_at else None,
            resolved_by=closing.actor if closing else None,
            resolved_at=closing.timestamp if closing else None,
            decision=closing.details.get("decision") if closing else None,
            comment=closing.details.get("comment") if closing else None,
        )

"""Permission Guard - Role/scope authorization for record actions"""
from typing import Dict, List, Optional

from ..domain.models import ActorContext, FundRecord, Permission
from ..domain.enums import (
    Role, ModuleType, PermissionAction, PermissionScope, RecordStatus
)
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Grants on this resource apply to every module type
ANY_RECORD = "record"
SYSTEM = "system"

_A = PermissionAction
_S = PermissionScope


def _grant(resource: str, action: PermissionAction, scope: PermissionScope) -> Permission:
    return Permission(resource=resource, action=action, scope=scope)


ROLE_PERMISSIONS: Dict[Role, List[Permission]] = {
    Role.ADMIN: [
        _grant(SYSTEM, _A.CONFIGURE, _S.ALL),
        _grant(ANY_RECORD, _A.READ, _S.ALL),
        _grant(ANY_RECORD, _A.APPROVE, _S.ALL),
        _grant(ANY_RECORD, _A.AUDIT, _S.ALL),
        # Admins may cancel anyone's pending withdrawal
        _grant(ANY_RECORD, _A.RECALL, _S.ALL),
    ],
    Role.REPORTER: [
        *[
            _grant(module.value, action, _S.SELF)
            for module in (ModuleType.PREDICT, ModuleType.ACTUAL_USER)
            for action in (_A.CREATE, _A.READ, _A.SUBMIT, _A.RECALL)
        ],
    ],
    Role.FINANCE: [
        _grant(ANY_RECORD, _A.READ, _S.ORGANIZATION),
        _grant(ModuleType.ACTUAL_FIN.value, _A.CREATE, _S.ORGANIZATION),
        _grant(ModuleType.ACTUAL_FIN.value, _A.SUBMIT, _S.ORGANIZATION),
        _grant(ModuleType.ACTUAL_FIN.value, _A.RECALL, _S.ORGANIZATION),
    ],
    Role.AUDITOR: [
        _grant(ANY_RECORD, _A.READ, _S.ORGANIZATION),
        _grant(ANY_RECORD, _A.AUDIT, _S.ORGANIZATION),
        _grant(ModuleType.AUDIT.value, _A.CREATE, _S.ORGANIZATION),
        _grant(ModuleType.AUDIT.value, _A.SUBMIT, _S.ORGANIZATION),
        _grant(ModuleType.AUDIT.value, _A.RECALL, _S.ORGANIZATION),
    ],
    Role.OBSERVER: [
        _grant(ANY_RECORD, _A.READ, _S.ORGANIZATION),
    ],
}


class PermissionGuard:
    """
    Permission enforcement for record operations

    Rules:
    - A grant matches when its resource is the record's module type (or
      'record' for all modules) and its action matches
    - 'all' scope reaches every record
    - 'organization' / 'department' scope reaches records of the actor's unit
    - 'self' scope reaches records the actor owns
    """

    def __init__(self, role_permissions: Optional[Dict[Role, List[Permission]]] = None):
        self._role_permissions = role_permissions or ROLE_PERMISSIONS

    def check_permission(
        self,
        actor: Optional[ActorContext],
        required: Permission,
        record: Optional[FundRecord] = None
    ) -> bool:
        """
        Check whether actor holds `required` (resource + action)

        Without a record only the grant itself is checked; with a record the
        grant's scope must also reach it.
        """
        if actor is None:
            return False

        for grant in self._matching_grants(actor, required):
            if record is None or self._scope_reaches(actor, grant.scope, record):
                return True
        return False

    def can_act_on_record(
        self,
        actor: Optional[ActorContext],
        record: FundRecord,
        action: PermissionAction
    ) -> bool:
        allowed = self.check_permission(
            actor,
            Permission(resource=record.module_type.value, action=action),
            record
        )
        if not allowed:
            logger.info(
                f"Permission denied: {action.value} on {record.module_type.value}",
                extra={
                    "record_id": record.record_id,
                    "actor_id": actor.user_id if actor else None,
                    "action": action.value
                }
            )
        return allowed

    def has_global_scope(
        self,
        actor: ActorContext,
        module_type: ModuleType,
        action: PermissionAction
    ) -> bool:
        """True when the actor's grant for this action covers every record"""
        required = Permission(resource=module_type.value, action=action)
        return any(g.scope == PermissionScope.ALL for g in self._matching_grants(actor, required))

    def widest_scope(self, actor: ActorContext, action: PermissionAction) -> Optional[PermissionScope]:
        """Broadest scope of any grant for `action`, across all modules"""
        order = [PermissionScope.ALL, PermissionScope.ORGANIZATION, PermissionScope.DEPARTMENT, PermissionScope.SELF]
        scopes = {
            g.scope for g in self._role_permissions.get(actor.role, [])
            if g.action == action and g.resource != SYSTEM
        }
        for scope in order:
            if scope in scopes:
                return scope
        return None

    def can_configure(self, actor: Optional[ActorContext]) -> bool:
        return self.check_permission(
            actor,
            Permission(resource=SYSTEM, action=PermissionAction.CONFIGURE, scope=PermissionScope.ALL)
        )

    def get_available_actions(self, actor: ActorContext, record: FundRecord) -> List[str]:
        """Workflow operations the actor may attempt on the record right now"""
        actions = []

        if record.status in (RecordStatus.DRAFT, RecordStatus.UNFILLED, RecordStatus.REJECTED):
            if self.can_act_on_record(actor, record, PermissionAction.SUBMIT):
                actions.append("submit")

        elif record.status == RecordStatus.SUBMITTED:
            if self.can_act_on_record(actor, record, PermissionAction.RECALL):
                actions.append("request_withdrawal")
            if self.can_act_on_record(actor, record, PermissionAction.AUDIT):
                actions.extend(["approve", "reject"])

        elif record.status == RecordStatus.PENDING_WITHDRAWAL:
            if self.can_act_on_record(actor, record, PermissionAction.RECALL):
                actions.append("cancel_withdrawal")
            if self.can_act_on_record(actor, record, PermissionAction.APPROVE):
                actions.append("resolve_withdrawal")

        return actions

    def _matching_grants(self, actor: ActorContext, required: Permission) -> List[Permission]:
        grants = self._role_permissions.get(actor.role, [])
        resources = {required.resource}
        if required.resource != SYSTEM:
            resources.add(ANY_RECORD)
        return [g for g in grants if g.resource in resources and g.action == required.action]

    @staticmethod
    def _scope_reaches(actor: ActorContext, scope: PermissionScope, record: FundRecord) -> bool:
        if scope == PermissionScope.ALL:
            return True
        if scope == PermissionScope.ORGANIZATION:
            return bool(actor.organization_id) and actor.organization_id == record.organization_id
        if scope == PermissionScope.DEPARTMENT:
            return bool(actor.department_id) and actor.department_id == record.department_id
        if scope == PermissionScope.SELF:
            return actor.user_id == record.owner_id
        return False

"""Withdrawal Config Service - Administrative policy management"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from ..domain.models import ActorContext, WithdrawalConfig
from ..domain.enums import AuditAction, ModuleType
from ..domain.errors import AuditError, ConfigNotFoundError, PermissionDeniedError
from ..engine.permission_guard import PermissionGuard
from ..engine.audit_writer import AuditWriter
from ..repositories.withdrawal_config_repo import WithdrawalConfigRepository
from ..repositories.audit_repo import AuditRepository
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ConfigChange:
    """Saved (or removed) policy plus non-fatal problems such as a failed audit write"""
    config: WithdrawalConfig
    warnings: List[Dict[str, Any]] = field(default_factory=list)


class WithdrawalConfigService:
    """
    Service for per-module withdrawal policies

    Reads are open to any authenticated actor; writes need system/configure.
    """

    def __init__(self, db: Database):
        self.repo = WithdrawalConfigRepository(db)
        self.audit_writer = AuditWriter(AuditRepository(db))
        self.permission_guard = PermissionGuard()

    def list_configs(self) -> List[WithdrawalConfig]:
        return self.repo.list_configs()

    def get_config(self, module_type: ModuleType) -> WithdrawalConfig:
        config = self.repo.get_config(module_type)
        if config is None:
            raise ConfigNotFoundError(
                f"No withdrawal config for module {module_type.value}",
                details={"module_type": module_type.value}
            )
        return config

    def upsert_config(
        self,
        config: WithdrawalConfig,
        actor: ActorContext,
        correlation_id: Optional[str] = None
    ) -> ConfigChange:
        """Create or replace a module's policy"""
        self._require_configure(actor)

        previous = self.repo.get_config(config.module_type)
        config = config.model_copy(update={"updated_at": utc_now(), "updated_by": actor.user_id})
        saved = self.repo.upsert_config(config)

        logger.info(
            f"Withdrawal config saved for {saved.module_type.value}",
            extra={"module_type": saved.module_type.value, "actor_id": actor.user_id}
        )
        return self._audited(
            saved, actor, AuditAction.UPDATE_WITHDRAWAL_CONFIG,
            previous=previous, deleted=False, correlation_id=correlation_id
        )

    def delete_config(
        self,
        module_type: ModuleType,
        actor: ActorContext,
        correlation_id: Optional[str] = None
    ) -> ConfigChange:
        """Remove a module's policy; withdrawals for that module become unavailable"""
        self._require_configure(actor)

        existing = self.get_config(module_type)
        self.repo.delete_config(module_type)

        logger.info(
            f"Withdrawal config deleted for {module_type.value}",
            extra={"module_type": module_type.value, "actor_id": actor.user_id}
        )
        return self._audited(
            existing, actor, AuditAction.DELETE_WITHDRAWAL_CONFIG,
            previous=existing, deleted=True, correlation_id=correlation_id
        )

    def _audited(
        self,
        config: WithdrawalConfig,
        actor: ActorContext,
        action: AuditAction,
        previous: Optional[WithdrawalConfig],
        deleted: bool,
        correlation_id: Optional[str]
    ) -> ConfigChange:
        """Write the audit event; the policy change already stands if it fails"""
        try:
            self.audit_writer.write_config_change(
                config, actor, previous=previous, deleted=deleted, correlation_id=correlation_id
            )
        except PyMongoError as e:
            error = AuditError(
                "Config change saved but the audit entry could not be written",
                details={
                    "module_type": config.module_type.value,
                    "action": action.value,
                    "cause": str(e)
                }
            )
            logger.error(
                f"Audit write failed for withdrawal config {config.module_type.value}: {e}",
                exc_info=True,
                extra={
                    "module_type": config.module_type.value,
                    "action": action.value,
                    "error_code": error.error_code
                }
            )
            return ConfigChange(config=config, warnings=[error.to_dict()["error"]])

        return ConfigChange(config=config)

    def _require_configure(self, actor: ActorContext) -> None:
        if not self.permission_guard.can_configure(actor):
            raise PermissionDeniedError(
                "Only administrators can change withdrawal configuration",
                details={"role": actor.role.value}
            )

"""Withdrawal Config Repository - Per-module withdrawal policy rows"""
from typing import List, Optional
from pymongo import ASCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

from .mongo_client import WITHDRAWAL_CONFIGS_COLLECTION
from ..domain.models import WithdrawalConfig
from ..domain.enums import ModuleType
from ..utils.logger import get_logger

logger = get_logger(__name__)


class WithdrawalConfigRepository:
    """Repository for withdrawal policies (one row per module type)"""

    def __init__(self, db: Database):
        self._configs: Collection = db[WITHDRAWAL_CONFIGS_COLLECTION]

    def get_config(self, module_type: ModuleType) -> Optional[WithdrawalConfig]:
        """Get the active policy for a module, or None when not configured"""
        doc = self._configs.find_one({"module_type": module_type.value})
        if doc:
            doc.pop("_id", None)
            return WithdrawalConfig.model_validate(doc)
        return None

    def list_configs(self) -> List[WithdrawalConfig]:
        configs = []
        for doc in self._configs.find({}).sort("module_type", ASCENDING):
            doc.pop("_id", None)
            configs.append(WithdrawalConfig.model_validate(doc))
        return configs

    def upsert_config(self, config: WithdrawalConfig) -> WithdrawalConfig:
        """Create or replace the policy for config.module_type"""
        doc = config.to_document()
        result = self._configs.find_one_and_update(
            {"module_type": doc["module_type"]},
            {"$set": doc},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        result.pop("_id", None)
        logger.info(
            f"Saved withdrawal config: {config.module_type.value}",
            extra={"module_type": config.module_type.value}
        )
        return WithdrawalConfig.model_validate(result)

    def delete_config(self, module_type: ModuleType) -> bool:
        result = self._configs.delete_one({"module_type": module_type.value})
        if result.deleted_count:
            logger.info(
                f"Deleted withdrawal config: {module_type.value}",
                extra={"module_type": module_type.value}
            )
        return result.deleted_count > 0

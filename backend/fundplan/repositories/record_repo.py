"""Record Repository - Data access for fund records"""
from typing import Any, Dict, List, Optional
from pymongo import DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

from .mongo_client import RECORDS_COLLECTION
from ..domain.models import FundRecord
from ..domain.enums import ModuleType, RecordStatus
from ..domain.errors import RecordNotFoundError, ConcurrencyError
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class RecordRepository:
    """Repository for fund record operations"""

    def __init__(self, db: Database):
        self._records: Collection = db[RECORDS_COLLECTION]

    def create_record(self, record: FundRecord) -> FundRecord:
        """Insert a new record"""
        doc = record.to_document()
        doc["_id"] = record.record_id

        self._records.insert_one(doc)
        logger.info(
            f"Created record: {record.record_id}",
            extra={"record_id": record.record_id, "module_type": record.module_type.value}
        )
        return record

    def get_record(self, record_id: str) -> Optional[FundRecord]:
        """Get record by ID"""
        doc = self._records.find_one({"record_id": record_id})
        if doc:
            doc.pop("_id", None)
            return FundRecord.model_validate(doc)
        return None

    def get_record_or_raise(self, record_id: str) -> FundRecord:
        """Get record by ID or raise error"""
        record = self.get_record(record_id)
        if not record:
            raise RecordNotFoundError(
                f"Record {record_id} not found",
                details={"record_id": record_id}
            )
        return record

    def update_record(
        self,
        record_id: str,
        updates: Dict[str, Any],
        expected_version: int,
        expected_status: Optional[RecordStatus] = None
    ) -> FundRecord:
        """
        Compare-and-set update.

        The write only lands if the stored version (and status, when given)
        still match what the caller read; the version is bumped atomically.

        Raises:
            ConcurrencyError: record changed since it was read
            RecordNotFoundError: record does not exist
        """
        updates = dict(updates)
        updates["updated_at"] = utc_now()
        updates["version"] = expected_version + 1

        filter_query: Dict[str, Any] = {"record_id": record_id, "version": expected_version}
        if expected_status is not None:
            filter_query["status"] = expected_status.value

        result = self._records.find_one_and_update(
            filter_query,
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )

        if result is None:
            current = self._records.find_one({"record_id": record_id}, {"version": 1, "status": 1})
            if current:
                raise ConcurrencyError(
                    f"Record {record_id} was modified. Please refresh and try again.",
                    details={
                        "record_id": record_id,
                        "expected_version": expected_version,
                        "current_version": current.get("version"),
                        "current_status": current.get("status"),
                    }
                )
            raise RecordNotFoundError(
                f"Record {record_id} not found",
                details={"record_id": record_id}
            )

        result.pop("_id", None)
        logger.info(
            f"Updated record: {record_id}",
            extra={"record_id": record_id, "status": result.get("status")}
        )
        return FundRecord.model_validate(result)

    def list_records(
        self,
        module_type: Optional[ModuleType] = None,
        status: Optional[RecordStatus] = None,
        owner_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[FundRecord]:
        """List records with filters, most recently updated first"""
        query = self._build_query(module_type, status, owner_id, organization_id)
        cursor = self._records.find(query).sort("updated_at", DESCENDING).skip(skip).limit(limit)

        records = []
        for doc in cursor:
            doc.pop("_id", None)
            records.append(FundRecord.model_validate(doc))
        return records

    def count_records(
        self,
        module_type: Optional[ModuleType] = None,
        status: Optional[RecordStatus] = None,
        owner_id: Optional[str] = None,
        organization_id: Optional[str] = None
    ) -> int:
        query = self._build_query(module_type, status, owner_id, organization_id)
        return self._records.count_documents(query)

    @staticmethod
    def _build_query(
        module_type: Optional[ModuleType],
        status: Optional[RecordStatus],
        owner_id: Optional[str],
        organization_id: Optional[str]
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        if module_type:
            query["module_type"] = module_type.value
        if status:
            query["status"] = status.value
        if owner_id:
            query["owner_id"] = owner_id
        if organization_id:
            query["organization_id"] = organization_id
        return query

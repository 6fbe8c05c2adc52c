"""Audit Repository - Data access for audit events"""
from typing import Any, Dict, List, Optional
from pymongo import DESCENDING
from pymongo.collection import Collection
from pymongo.database import Database

from .mongo_client import AUDIT_EVENTS_COLLECTION
from ..domain.models import AuditEvent
from ..domain.enums import AuditAction, AuditTargetType, ModuleType
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditRepository:
    """Repository for audit event operations (append-only)"""

    def __init__(self, db: Database):
        self._audit_events: Collection = db[AUDIT_EVENTS_COLLECTION]

    def create_event(self, event: AuditEvent) -> AuditEvent:
        """Create an audit event (append-only)"""
        doc = event.model_dump(mode="json")
        doc["timestamp"] = event.timestamp  # keep native for range queries
        doc["_id"] = event.audit_event_id

        self._audit_events.insert_one(doc)
        logger.info(
            f"Created audit event: {event.action.value}",
            extra={
                "record_id": event.target_id,
                "audit_event_id": event.audit_event_id,
                "actor_id": event.actor.user_id
            }
        )
        return event

    def get_events_for_target(
        self,
        target_id: str,
        actions: Optional[List[AuditAction]] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[AuditEvent]:
        """Get audit events for a record or config, newest first"""
        query: Dict[str, Any] = {"target_id": target_id}

        if actions:
            query["action"] = {"$in": [a.value for a in actions]}

        cursor = self._audit_events.find(query).sort("timestamp", DESCENDING).skip(skip).limit(limit)
        return [self._to_model(doc) for doc in cursor]

    def count_events_for_target(self, target_id: str) -> int:
        return self._audit_events.count_documents({"target_id": target_id})

    def find_request_events(
        self,
        actions: List[AuditAction],
        requested_by: Optional[str] = None,
        module_type: Optional[ModuleType] = None,
        request_ids: Optional[List[str]] = None,
        exclude_request_ids: Optional[List[str]] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[AuditEvent]:
        """Withdrawal request events (grouped by details.request_id), newest first"""
        query = self._request_query(actions, requested_by, module_type, request_ids, exclude_request_ids)
        cursor = self._audit_events.find(query).sort("timestamp", DESCENDING).skip(skip).limit(limit)
        return [self._to_model(doc) for doc in cursor]

    def count_request_events(
        self,
        actions: List[AuditAction],
        requested_by: Optional[str] = None,
        module_type: Optional[ModuleType] = None,
        exclude_request_ids: Optional[List[str]] = None
    ) -> int:
        query = self._request_query(actions, requested_by, module_type, None, exclude_request_ids)
        return self._audit_events.count_documents(query)

    def get_request_ids(
        self,
        actions: List[AuditAction],
        requested_by: Optional[str] = None,
        module_type: Optional[ModuleType] = None
    ) -> List[str]:
        """Distinct request ids that have an event with one of `actions`"""
        query = self._request_query(actions, requested_by, module_type, None, None)
        return self._audit_events.distinct("details.request_id", query)

    @staticmethod
    def _request_query(
        actions: List[AuditAction],
        requested_by: Optional[str],
        module_type: Optional[ModuleType],
        request_ids: Optional[List[str]],
        exclude_request_ids: Optional[List[str]]
    ) -> Dict[str, Any]:
        request_id: Dict[str, Any] = {"$ne": None}
        if request_ids is not None:
            request_id["$in"] = request_ids
        if exclude_request_ids:
            request_id["$nin"] = exclude_request_ids

        query: Dict[str, Any] = {
            "target_type": AuditTargetType.RECORD.value,
            "action": {"$in": [a.value for a in actions]},
            "details.request_id": request_id,
        }
        if requested_by:
            query["details.requested_by"] = requested_by
        if module_type:
            query["details.module_type"] = module_type.value
        return query

    @staticmethod
    def _to_model(doc: Dict[str, Any]) -> AuditEvent:
        doc.pop("_id", None)
        return AuditEvent.model_validate(doc)

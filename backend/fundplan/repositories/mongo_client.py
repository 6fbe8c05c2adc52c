"""MongoDB Client - Connection and Index Management

The client is created once by the application (see main.lifespan) and the
database handle is passed to repositories explicitly.
"""
from typing import Any, Dict
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError

from ..config.settings import Settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

RECORDS_COLLECTION = "fund_records"
WITHDRAWAL_CONFIGS_COLLECTION = "withdrawal_configs"
AUDIT_EVENTS_COLLECTION = "audit_events"


def create_client(settings: Settings) -> MongoClient:
    """Create a MongoDB client and verify the connection"""
    logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
    client = MongoClient(
        settings.mongo_uri,
        serverSelectionTimeoutMS=settings.mongo_timeout_ms,
        connectTimeoutMS=settings.mongo_timeout_ms,
        socketTimeoutMS=30000,
        tz_aware=True,
    )
    try:
        client.admin.command("ping")
        logger.info("MongoDB connection successful")
    except ConnectionFailure as e:
        logger.error(f"MongoDB connection failed: {e}")
        raise
    return client


def create_indexes(db: Database) -> None:
    """Create all required indexes"""
    logger.info("Creating MongoDB indexes...")

    records = db[RECORDS_COLLECTION]
    records.create_index("record_id", unique=True)
    records.create_index([("module_type", ASCENDING), ("status", ASCENDING)])
    records.create_index("owner_id")
    records.create_index("organization_id")
    records.create_index("updated_at")

    # One policy row per module
    configs = db[WITHDRAWAL_CONFIGS_COLLECTION]
    configs.create_index("module_type", unique=True)

    audit_events = db[AUDIT_EVENTS_COLLECTION]
    audit_events.create_index("audit_event_id", unique=True)
    audit_events.create_index([("target_id", ASCENDING), ("timestamp", DESCENDING)])
    audit_events.create_index("timestamp")
    audit_events.create_index("correlation_id")
    audit_events.create_index("details.request_id")
    audit_events.create_index([("action", ASCENDING), ("details.requested_by", ASCENDING)])

    logger.info("MongoDB indexes created successfully")


def health_check(client: MongoClient, db_name: str) -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client.admin.command("ping")
        return {
            "status": "healthy",
            "database": db_name,
            "connection": "ok"
        }
    except PyMongoError as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": db_name,
            "error": str(e)
        }

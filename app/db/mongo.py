import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from app.core.config import settings

logger = logging.getLogger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URI, tz_aware=True)
    mongodb.db = mongodb.client[settings.MONGODB_DB]

    await create_indexes(mongodb.db)
    logger.info("Connected to MongoDB: %s", settings.MONGODB_DB)

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    mongodb.client = None
    mongodb.db = None
    logger.info("Disconnected from MongoDB")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes."""
    # Debt natural key
    await db["debts"].create_index("email", unique=True)
    await db["debts"].create_index([("status", 1), ("created_at", -1)])

    # Payment record idempotency key
    await db["payment_records"].create_index("external_ref", unique=True)
    await db["payment_records"].create_index([("debt_id", 1), ("paid_at", -1)])

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db

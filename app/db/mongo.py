import logging
from contextlib import asynccontextmanager

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from app.core.config import settings

logger = logging.getLogger(__name__)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URL)
    mongodb.db = mongodb.client[settings.DATABASE_NAME]

    # Create indexes
    await create_indexes(mongodb.db)
    logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("Disconnected from MongoDB")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes."""
    # Payment rule indexes
    await db["payment_rules"].create_index([("is_active", ASCENDING), ("start_date", ASCENDING)])

    # Obligation indexes
    await db["payment_obligations"].create_index([("status", ASCENDING), ("due_date", ASCENDING)])
    await db["payment_obligations"].create_index("stripe_invoice_id", sparse=True)
    # One obligation per rule occurrence
    await db["payment_obligations"].create_index(
        [("custom_payment_id", ASCENDING), ("due_date", ASCENDING)],
        unique=True,
        partialFilterExpression={"custom_payment_id": {"$type": "string"}},
    )

    # Settlement indexes
    await db["payment_settlements"].create_index([("obligation_id", ASCENDING), ("paid_at", DESCENDING)])

    # Stripe history indexes
    await db["stripe_payments"].create_index("payment_date")

@asynccontextmanager
async def transaction(db: AsyncIOMotorDatabase):
    """Run the enclosed writes in one MongoDB transaction; yields the session."""
    async with await db.client.start_session() as session:
        async with session.start_transaction():
            yield session

async def get_database() -> AsyncIOMotorDatabase:
    """Return the active database connection."""
    return mongodb.db

"""MongoDB database connection using Motor (async driver)."""
import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from timetracker.config import settings


logger = logging.getLogger(__name__)


async def ensure_indexes(db) -> None:
    """
    Create the indexes the services rely on.

    The partial unique index on running entries is what closes the race
    between two concurrent timer starts for the same user.
    """
    await db["time_entries"].create_index(
        [("user_id", ASCENDING)],
        name="one_running_timer_per_user",
        unique=True,
        partialFilterExpression={"running": True},
    )
    await db["time_entries"].create_index(
        [("user_id", ASCENDING), ("started_at", DESCENDING)]
    )
    await db["time_entries"].create_index(
        [("project_id", ASCENDING), ("started_at", DESCENDING)]
    )
    await db["organization_users"].create_index(
        [("organization_id", ASCENDING), ("user_id", ASCENDING)],
        unique=True,
    )
    await db["organization_invites"].create_index(
        [("organization_id", ASCENDING), ("email", ASCENDING)],
        unique=True,
    )
    await db["organization_invites"].create_index([("email", ASCENDING)])
    await db["projects"].create_index([("organization_id", ASCENDING)])
    await db["users"].create_index([("email", ASCENDING)], unique=True)
    logger.info("Indexes ensured on %s", db.name)


class Database:
    """MongoDB database connection manager."""

    client: AsyncIOMotorClient | None = None
    db: AsyncIOMotorDatabase | None = None

    async def connect(self) -> None:
        """Connect to MongoDB and make sure indexes exist."""
        self.client = AsyncIOMotorClient(settings.mongodb_url)
        self.db = self.client[settings.mongodb_db_name]
        logger.info("Connected to MongoDB: %s", settings.mongodb_db_name)
        await ensure_indexes(self.db)

    async def disconnect(self) -> None:
        """Disconnect from MongoDB."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    def get_collection(self, name: str):
        """Get a MongoDB collection."""
        if self.db is None:
            raise RuntimeError("Database not connected")
        return self.db[name]


# Global database instance
database = Database()


async def get_database() -> AsyncIOMotorDatabase:
    """Dependency to get database instance."""
    if database.db is None:
        raise RuntimeError("Database not connected")
    return database.db

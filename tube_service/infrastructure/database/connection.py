"""
MongoDB database connection and utilities
"""
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, TEXT

from ...config import settings

logger = logging.getLogger(__name__)

USERS = "users"
VIDEOS = "videos"
LIKES = "likes"
COMMENTS = "comments"
SUBSCRIPTIONS = "subscriptions"


class MongoDB:
    """MongoDB connection manager"""

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self):
        """Connect to MongoDB"""
        self.client = AsyncIOMotorClient(settings.MONGODB_URL)
        self.db = self.client[settings.MONGODB_DATABASE]

        await self.create_indexes()

        logger.info(f"Connected to MongoDB database {settings.MONGODB_DATABASE}")

    async def disconnect(self):
        """Disconnect from MongoDB"""
        if self.client:
            self.client.close()
            logger.info("MongoDB connection closed")

    async def create_indexes(self):
        """Create database indexes"""
        users = self.db[USERS]
        await users.create_index("username", unique=True)
        await users.create_index("email", unique=True)

        videos = self.db[VIDEOS]
        # Text index backing the feed search
        await videos.create_index([("title", TEXT), ("description", TEXT)])
        await videos.create_index([("owner", ASCENDING), ("created_at", DESCENDING)])
        await videos.create_index([("is_published", ASCENDING), ("created_at", DESCENDING)])

        await self.db[LIKES].create_index(
            [("video", ASCENDING), ("liked_by", ASCENDING)], unique=True
        )
        await self.db[COMMENTS].create_index("video")

        subscriptions = self.db[SUBSCRIPTIONS]
        await subscriptions.create_index("channel")
        await subscriptions.create_index("subscriber")

        logger.info("MongoDB indexes created")


# Global MongoDB instance
mongodb = MongoDB()


async def get_db() -> AsyncIOMotorDatabase:
    """Dependency for getting database instance"""
    return mongodb.db

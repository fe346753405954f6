from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
import logging

from .config import Settings

logger = logging.getLogger(__name__)


def create_mongo_client(settings: Settings) -> AsyncIOMotorClient:
    client = AsyncIOMotorClient(settings.mongo_url)
    logger.info(f"MongoDB client created for database {settings.db_name}")
    return client


# Dependency for database handle
def get_db(request: Request) -> AsyncIOMotorDatabase:
    return request.app.state.db

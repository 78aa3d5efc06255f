# backend/db.py
import logging
from functools import lru_cache
from typing import Iterator

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from settings import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_client() -> MongoClient:
    """One client (and connection pool) per process; connects lazily."""
    settings = get_settings()
    return MongoClient(
        settings.mongo_url,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
    )


def get_database() -> Database:
    return get_client()[get_settings().db_name]


def close_client() -> None:
    if get_client.cache_info().currsize:
        get_client().close()
        get_client.cache_clear()


def init_db(db: Database) -> None:
    """A night is keyed by its wake date, so dateAwake must be unique."""
    nights = db[get_settings().nights_collection]
    nights.create_index([("dateAwake", ASCENDING)], unique=True, name="dateAwake_unique")
    logger.info("ensured unique dateAwake index on %s.%s", db.name, nights.name)


def ping(db: Database) -> bool:
    try:
        db.command("ping")
        return True
    except PyMongoError as e:
        logger.warning("database ping failed: %s", e)
        return False


def get_db() -> Iterator[Database]:
    """FastAPI dependency; tests override it with an in-memory database."""
    yield get_database()

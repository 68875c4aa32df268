# MongoDB lifecycle: connect at startup, expose via dependency, close at shutdown

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from pymongo import ASCENDING, MongoClient

from . import config
from .categories import initialize_default_categories

logger = logging.getLogger(__name__)

executor = ThreadPoolExecutor(max_workers=10)


def init_collections(db) -> None:
    """Create indexes and seed default categories. Safe to call repeatedly."""
    db.complaints.create_index("created_at")
    db.complaints.create_index("status")
    db.complaints.create_index("category")
    db.complaints.create_index("submitted_by")
    db.complaints.create_index([("location", "2dsphere")])
    db.users.create_index([("email", ASCENDING)], unique=True)
    db.users.create_index("role")
    db.categories.create_index([("name", ASCENDING)], unique=True)
    db.categories.create_index([("is_active", ASCENDING), ("order", ASCENDING)])
    initialize_default_categories(db)


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = MongoClient(config.MONGODB_URL)
    db = client[config.MONGODB_DB]
    loop = asyncio.get_event_loop()
    await loop.run_in_executor(executor, init_collections, db)
    app.state.db_client = client
    app.state.db = db
    logger.info("Database initialized: %s/%s", config.MONGODB_URL, config.MONGODB_DB)
    try:
        yield
    finally:
        client.close()
        logger.info("Database connection closed")


async def get_db(request: Request):
    return request.app.state.db

"""
MongoDB access for CardFeed.

`db` is the process-wide database handle. Code that touches the store calls
`get_db()` so the handle is looked up at call time and can be swapped out
(tests patch it with a mongomock database).
"""

import logging
from datetime import datetime, timezone

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

import settings

logger = logging.getLogger(__name__)

client = MongoClient(settings.DATABASE_URL, connect=False, serverSelectionTimeoutMS=5000)
db = client[settings.DATABASE_NAME]


def get_db():
    return db


def create_document(collection_name: str, data) -> str:
    """Insert a document and return its id as a string.

    Accepts a pydantic model or a plain dict. `created_at` is filled in when
    the caller did not set it.
    """
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    doc.setdefault("created_at", datetime.now(timezone.utc))
    result = get_db()[collection_name].insert_one(doc)
    return str(result.inserted_id)


def ensure_indexes():
    database = get_db()
    database["users"].create_index([("email", ASCENDING)], unique=True)
    database["users"].create_index([("id", ASCENDING)], unique=True)
    database["posts"].create_index([("status", ASCENDING), ("date", DESCENDING)])
    database["posts"].create_index([("author.id", ASCENDING)])
    database["posts"].create_index([("category", ASCENDING)])
    database["notifications"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["sessions"].create_index([("token", ASCENDING)], unique=True)
    logger.info("Indexes ensured on %s", database.name)

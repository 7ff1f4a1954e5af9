"""
MongoDB helpers for the School Admin API

The connection is opened once by the app factory and handed to the
repositories; nothing here holds a module-level client.
"""

from datetime import datetime, timezone
from typing import Any, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from app_logger import get_logger
from schemas import to_document

logger = get_logger("database")


def connect(settings) -> Database:
    """Open the client and ping the server; raises if the store is unreachable."""
    client = MongoClient(settings.mongo_uri, serverSelectionTimeoutMS=5000, tz_aware=True)
    client.admin.command("ping")
    logger.info("MongoDB connected (database=%s)", settings.database_name)
    return client[settings.database_name]


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    out = dict(doc)
    if "_id" in out:
        out["_id"] = str(out["_id"])
    return out


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a document with created_at/updated_at stamps and return it as stored."""
    if isinstance(data, BaseModel):
        data_dict = to_document(data)
    else:
        data_dict = data.copy()

    now = datetime.now(timezone.utc)
    data_dict["created_at"] = now
    data_dict["updated_at"] = now

    result = db[collection_name].insert_one(data_dict)
    data_dict["_id"] = result.inserted_id
    return data_dict


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
    sort: Optional[list] = None,
) -> list:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)

"""
MongoDB access helpers

The module-level `db` handle is created from DATABASE_URL / DATABASE_NAME.
Everything else in the app goes through the helpers below, which look the
handle up at call time so tests can swap it out.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from loguru import logger
from pydantic import BaseModel
from pymongo import MongoClient, ReturnDocument

from errors import StorageError

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

_client = None
db = None

if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]
    logger.info("Using MongoDB database {}", DATABASE_NAME)
else:
    logger.warning("DATABASE_URL / DATABASE_NAME not set, storage is unavailable")


def get_collection(collection_name: str):
    if db is None:
        raise StorageError("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return db[collection_name]


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document, stamping created_at/updated_at. Returns the inserted _id as a string."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()

    now = datetime.now(timezone.utc)
    data_dict["created_at"] = now
    data_dict["updated_at"] = now

    result = get_collection(collection_name).insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
) -> List[dict]:
    cursor = get_collection(collection_name).find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(int(limit))
    return list(cursor)


def find_document(collection_name: str, filter_dict: dict) -> Optional[dict]:
    return get_collection(collection_name).find_one(filter_dict)


def update_document(
    collection_name: str,
    filter_dict: dict,
    set_fields: Optional[Dict[str, Any]] = None,
    inc_fields: Optional[Dict[str, Any]] = None,
) -> Optional[dict]:
    """Apply $set/$inc to one document and return it after the update, or None if nothing matched."""
    update: Dict[str, Any] = {"$set": dict(set_fields or {})}
    update["$set"]["updated_at"] = datetime.now(timezone.utc)
    if inc_fields:
        update["$inc"] = inc_fields

    return get_collection(collection_name).find_one_and_update(
        filter_dict, update, return_document=ReturnDocument.AFTER
    )


def delete_document(collection_name: str, filter_dict: dict) -> Optional[dict]:
    return get_collection(collection_name).find_one_and_delete(filter_dict)


def delete_documents(collection_name: str, filter_dict: Optional[dict] = None) -> int:
    result = get_collection(collection_name).delete_many(filter_dict or {})
    return result.deleted_count


def next_sequence(name: str) -> int:
    """Atomically allocate the next integer id for `name` from the counters collection."""
    doc = get_collection("counters").find_one_and_update(
        {"_id": name},
        {"$inc": {"value": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int(doc["value"])


def ping() -> List[str]:
    """Round-trip to the server; returns the collection names."""
    if db is None:
        raise StorageError("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return db.list_collection_names()

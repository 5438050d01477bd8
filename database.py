"""
MongoDB access for the storefront.

`db` is None when DATABASE_URL / DATABASE_NAME are not set; request handlers
get the database through the `get_db` dependency so tests can swap it.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient

from errors import ServiceUnavailable

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

db = None

if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]
    logger.info("Using MongoDB database %s", DATABASE_NAME)
else:
    logger.warning("DATABASE_URL/DATABASE_NAME not set, database disabled")


def get_db():
    if db is None:
        raise ServiceUnavailable("Database not configured")
    return db


def to_object_id(value: Union[str, ObjectId]) -> ObjectId:
    # bson.errors.InvalidId propagates to the error boundary as a 404
    if isinstance(value, ObjectId):
        return value
    return ObjectId(value)


def serialize(doc: Optional[dict]) -> Optional[dict]:
    """Expose `_id` as a string `id` for responses."""
    if doc is None:
        return None
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


def create_document(database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a document with timestamps and return it serialized."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = datetime.now(timezone.utc)
    data_dict["created_at"] = now
    data_dict["updated_at"] = now

    result = database[collection_name].insert_one(data_dict)
    data_dict["_id"] = result.inserted_id
    logger.info("Created %s %s", collection_name, result.inserted_id)
    return serialize(data_dict)


def get_documents(database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None) -> List[dict]:
    return [serialize(doc) for doc in database[collection_name].find(filter_dict or {})]


def populate(database, doc: dict, field: str, collection_name: str, fields: List[str]) -> dict:
    """Replace the reference in `doc[field]` with selected fields of the referenced record.

    The reference is left as-is when the referenced record no longer exists.
    """
    ref = doc.get(field)
    if not ref:
        return doc
    try:
        ref_id = to_object_id(ref)
    except InvalidId:
        return doc
    projection = {name: 1 for name in fields}
    referenced = database[collection_name].find_one({"_id": ref_id}, projection)
    if referenced:
        doc[field] = serialize(referenced)
    return doc

"""Identifier resolution for documents of unknown shape.

A textual id may be a native ObjectId (24 hex chars) or a value stored in one of
the conventional key fields bot-style collections use (``sessionId``,
``user_id``, ...). Predicates built here are shared by reads, updates and
deletes so all three address the same document.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from pymongo.collection import Collection

# Order matters only for readability of the generated predicate.
ALT_ID_FIELDS: Tuple[str, ...] = (
    "_id",
    "id",
    "sessionId",
    "session_id",
    "userId",
    "user_id",
    "chatId",
    "chat_id",
)


def as_object_id(value: Any) -> Optional[ObjectId]:
    """ObjectId for a 24-hex string, else None.

    ``ObjectId.is_valid`` also accepts 12-byte strings; those are not treated as
    encoded ids since any 12-character name would qualify.
    """
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or len(value) != 24:
        return None
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def id_predicate(raw_id: str) -> Dict[str, Any]:
    branches: List[Dict[str, Any]] = []
    oid = as_object_id(raw_id)
    if oid is not None:
        branches.append({"_id": oid})
    branches.extend({field: raw_id} for field in ALT_ID_FIELDS)
    return {"$or": branches}


def find_by_id(collection: Collection, raw_id: str, projection: Optional[Dict[str, Any]] = None):
    """Locate one document; a native primary-key hit wins over alternate-field hits."""
    oid = as_object_id(raw_id)
    if oid is not None:
        doc = collection.find_one({"_id": oid}, projection)
        if doc is not None:
            return doc
    return collection.find_one(id_predicate(raw_id), projection)


def split_ids(ids: Iterable[str]) -> Tuple[List[ObjectId], List[str]]:
    """Partition into ObjectId-encodable values and opaque strings, de-duplicated, order kept."""
    oids: List[ObjectId] = []
    strings: List[str] = []
    seen = set()
    for raw in ids:
        if raw in seen:
            continue
        seen.add(raw)
        oid = as_object_id(raw)
        if oid is not None:
            oids.append(oid)
        else:
            strings.append(raw)
    return oids, strings


def bulk_id_predicate(ids: Iterable[str]) -> Dict[str, Any]:
    oids, strings = split_ids(ids)
    branches: List[Dict[str, Any]] = []
    if oids:
        branches.append({"_id": {"$in": oids}})
    if strings:
        branches.extend({field: {"$in": strings}} for field in ALT_ID_FIELDS)
    return {"$or": branches}

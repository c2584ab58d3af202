import json
from datetime import timedelta
from typing import Any, Dict, List
from bson import json_util
from bson.errors import BSONError
from pymongo.database import Database

from ..errors import NotFoundError, ValidationError
from ..logger import get_logger
from ..utils import utcnow
from .identifiers import bulk_id_predicate, find_by_id

logger = get_logger("services.mutations")

UPDATED_AT_FIELD = "updatedAt"
DEFAULT_PRUNE_DAYS = 7
DEFAULT_DATE_FIELD = "lastActive"


def _from_jsonable(patch: Dict[str, Any]) -> Dict[str, Any]:
    """Decode Extended JSON values ({"$date": ...}, {"$oid": ...}) in an incoming patch."""
    return json_util.loads(json.dumps(patch))


def prepare_patch(patch: Any) -> Dict[str, Any]:
    if not isinstance(patch, dict):
        raise ValidationError("Update payload must be a JSON object")
    try:
        doc = _from_jsonable(patch)
    except (ValueError, TypeError, BSONError) as e:
        raise ValidationError(f"Invalid update payload: {e}") from e
    if not isinstance(doc, dict):
        raise ValidationError("Update payload must be a JSON object")
    # Ensure _id is not overwritten
    doc.pop("_id", None)
    operators = [k for k in doc if k.startswith("$")]
    if operators:
        raise ValidationError(f"Update operators are not allowed in the payload: {', '.join(operators)}")
    doc[UPDATED_AT_FIELD] = utcnow()
    return doc


def update_document(db: Database, collection: str, doc_id: str, patch: Any) -> Dict[str, Any]:
    doc = prepare_patch(patch)
    col = db[collection]
    target = find_by_id(col, doc_id, {"_id": 1})
    if target is None:
        raise NotFoundError("Document not found")
    key = {"_id": target["_id"]}
    res = col.update_one(key, {"$set": doc})
    if res.matched_count == 0:
        # Removed between lookup and update.
        raise NotFoundError("Document not found")
    logger.info("Updated %s/%s (modified=%d)", collection, target["_id"], res.modified_count)
    return {
        "matchedCount": res.matched_count,
        "modifiedCount": res.modified_count,
        "document": col.find_one(key),
    }


def delete_document(db: Database, collection: str, doc_id: str) -> Dict[str, Any]:
    col = db[collection]
    target = find_by_id(col, doc_id, {"_id": 1})
    if target is None:
        raise NotFoundError("Document not found")
    res = col.delete_one({"_id": target["_id"]})
    if res.deleted_count == 0:
        raise NotFoundError("Document not found")
    logger.info("Deleted %s/%s", collection, target["_id"])
    return {"deletedCount": res.deleted_count}


def bulk_delete(db: Database, collection: str, ids: Any) -> Dict[str, Any]:
    if not isinstance(ids, list) or not ids:
        raise ValidationError("ids must be a non-empty list")
    if not all(isinstance(i, str) and i.strip() for i in ids):
        raise ValidationError("ids must contain only non-empty strings")
    cleaned: List[str] = [i.strip() for i in ids]
    res = db[collection].delete_many(bulk_id_predicate(cleaned))
    logger.info("Bulk delete on %s: %d requested, %d deleted", collection, len(cleaned), res.deleted_count)
    return {"deletedCount": res.deleted_count}


def prune_older_than(
    db: Database,
    collection: str,
    days: Any = DEFAULT_PRUNE_DAYS,
    date_field: Any = DEFAULT_DATE_FIELD,
) -> Dict[str, Any]:
    if isinstance(days, bool) or not isinstance(days, int) or days < 0:
        raise ValidationError("days must be a non-negative integer")
    if not isinstance(date_field, str) or not date_field.strip() or date_field.startswith("$"):
        raise ValidationError("dateField must be a field name")
    cutoff = utcnow() - timedelta(days=days)
    res = db[collection].delete_many({date_field.strip(): {"$lt": cutoff}})
    logger.info("Pruned %d documents from %s where %s < %s", res.deleted_count, collection, date_field, cutoff.isoformat())
    return {"deletedCount": res.deleted_count, "cutoff": cutoff}

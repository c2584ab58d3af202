import math
from typing import Any, Dict, List, Optional
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from ..errors import NotFoundError
from ..logger import get_logger
from .identifiers import find_by_id
from .query import build_query, describe_query

logger = get_logger("services.browser")


def _run_stats_command(db: Database, command: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    # None when the server (or an emulator) does not support the command.
    try:
        return db.command(command)
    except (PyMongoError, NotImplementedError) as e:
        logger.warning("%s unavailable on %r: %s", next(iter(command)), db.name, e)
        return None


def _num(stats: Dict[str, Any], key: str) -> Any:
    value = stats.get(key) or 0
    return int(value) if isinstance(value, float) and value.is_integer() else value


def list_collections(db: Database) -> List[Dict[str, Any]]:
    return [
        {"name": name, "documentCount": db[name].count_documents({})}
        for name in sorted(db.list_collection_names())
    ]


def database_stats(db: Database) -> Dict[str, Any]:
    stats = _run_stats_command(db, {"dbStats": 1})
    if stats is None:
        names = db.list_collection_names()
        return {
            "collections": len(names),
            "documents": sum(db[n].count_documents({}) for n in names),
            "dataSize": 0,
            "storageSize": 0,
            "indexSize": 0,
            "avgObjSize": 0,
        }
    return {
        "collections": _num(stats, "collections"),
        "documents": _num(stats, "objects"),
        "dataSize": _num(stats, "dataSize"),
        "storageSize": _num(stats, "storageSize"),
        "indexSize": _num(stats, "indexSize"),
        "avgObjSize": _num(stats, "avgObjSize"),
    }


def database_info(db: Database) -> Dict[str, Any]:
    return {
        "connected": True,
        "database": db.name,
        "stats": database_stats(db),
        "collections": list_collections(db),
    }


def collection_stats(db: Database, collection: str) -> Dict[str, Any]:
    stats = _run_stats_command(db, {"collStats": collection}) or {}
    return {
        "size": _num(stats, "size"),
        "count": _num(stats, "count"),
        "avgObjSize": _num(stats, "avgObjSize"),
        "totalIndexSize": _num(stats, "totalIndexSize"),
    }


def sort_spec(sort_by: Optional[str], sort_order: Optional[str]) -> List[tuple]:
    direction = DESCENDING if (sort_order or "").lower() == "desc" else ASCENDING
    field = (sort_by or "").strip() or "_id"
    spec = [(field, direction)]
    if field != "_id":
        # Tie-breaker keeps consecutive pages disjoint on non-unique sort keys.
        spec.append(("_id", direction))
    return spec


def field_inventory(documents: List[Dict[str, Any]]) -> List[str]:
    """Union of top-level keys seen on the given documents, first-seen order."""
    fields: Dict[str, None] = {}
    for doc in documents:
        for key in doc.keys():
            fields.setdefault(key, None)
    return list(fields)


def browse(
    db: Database,
    collection: str,
    page: int = 1,
    limit: int = 50,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    search: Optional[str] = None,
    raw_filter: Optional[str] = None,
    max_limit: int = 500,
    strategy: str = "auto",
) -> Dict[str, Any]:
    col = db[collection]
    page = max(1, page)
    limit = max(1, min(max_limit, limit))
    skip = (page - 1) * limit

    query = build_query(col, search, raw_filter, strategy)
    logger.debug("browse %s query=%s page=%d limit=%d", collection, describe_query(query), page, limit)

    # Count first
    total = col.count_documents(query)
    documents = list(col.find(query).sort(sort_spec(sort_by, sort_order)).skip(skip).limit(limit))

    total_pages = math.ceil(total / limit) if total else 0
    return {
        "documents": documents,
        "fields": field_inventory(documents),
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalDocuments": total,
            "limit": limit,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
        },
        "collectionStats": collection_stats(db, collection),
    }


def get_one(db: Database, collection: str, doc_id: str) -> Dict[str, Any]:
    doc = find_by_id(db[collection], doc_id)
    if doc is None:
        raise NotFoundError("Document not found")
    return doc

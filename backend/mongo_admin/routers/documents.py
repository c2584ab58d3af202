from fastapi import APIRouter, Body, Depends
from typing import Any, Dict, Optional
from pymongo.database import Database

from ..dependencies import get_db
from ..schemas import BulkDeleteRequest, PruneRequest
from ..services.browser import get_one
from ..services.mutations import bulk_delete, delete_document, prune_older_than, update_document
from ..utils import to_jsonable

router = APIRouter(tags=["documents"])


@router.post("/collections/{collection}/bulk-delete")
def bulk_delete_documents(collection: str, payload: BulkDeleteRequest, db: Database = Depends(get_db)):
    res = bulk_delete(db, collection, payload.ids)
    return {"success": True, **res}


@router.post("/collections/{collection}/prune")
def prune_documents(collection: str, payload: Optional[PruneRequest] = None, db: Database = Depends(get_db)):
    """Delete documents whose `dateField` is older than `days` days."""
    payload = payload or PruneRequest()
    res = prune_older_than(db, collection, payload.days, payload.date_field)
    return {"success": True, **to_jsonable(res)}


@router.get("/collections/{collection}/{doc_id}")
def get_document(collection: str, doc_id: str, db: Database = Depends(get_db)):
    return to_jsonable(get_one(db, collection, doc_id))


@router.put("/collections/{collection}/{doc_id}")
def put_document(collection: str, doc_id: str, payload: Dict[str, Any] = Body(...), db: Database = Depends(get_db)):
    res = update_document(db, collection, doc_id, payload)
    return {"success": True, **to_jsonable(res)}


@router.delete("/collections/{collection}/{doc_id}")
def remove_document(collection: str, doc_id: str, db: Database = Depends(get_db)):
    res = delete_document(db, collection, doc_id)
    return {"success": True, **res}

from fastapi import APIRouter, Depends, Query
from typing import Optional
from pymongo.database import Database

from ..config import Settings
from ..dependencies import get_db, get_settings
from ..services.browser import browse, list_collections
from ..utils import to_jsonable

router = APIRouter(tags=["collections"])


@router.get("/collections")
def get_collections(db: Database = Depends(get_db)):
    return list_collections(db)


@router.get("/collections/{collection}")
def browse_collection(
    collection: str,
    page: int = 1,
    limit: Optional[int] = None,
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    search: str = "",
    filter: Optional[str] = Query(None, description="JSON (Extended JSON) filter; ignored when malformed"),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    result = browse(
        db,
        collection,
        page=page,
        limit=limit if limit is not None else settings.default_page_size,
        sort_by=sort_by,
        sort_order=sort_order,
        search=search,
        raw_filter=filter,
        max_limit=settings.max_page_size,
        strategy=settings.search_strategy,
    )
    return to_jsonable(result)

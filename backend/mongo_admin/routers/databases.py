from fastapi import APIRouter, Depends
from pymongo.database import Database

from ..dependencies import get_db
from ..services.browser import database_info, database_stats

router = APIRouter(tags=["databases"])


@router.get("/info")
def info(db: Database = Depends(get_db)):
    """Database name, dbStats summary and every collection with its document count."""
    return database_info(db)


@router.get("/stats")
def stats(db: Database = Depends(get_db)):
    return {"database": db.name, "stats": database_stats(db)}

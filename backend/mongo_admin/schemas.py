from typing import Any, List, Optional
from pydantic import BaseModel, Field

from .services.mutations import DEFAULT_DATE_FIELD, DEFAULT_PRUNE_DAYS


class ConnectRequest(BaseModel):
    url: Optional[str] = None
    database: Optional[str] = None


class ConnectionStats(BaseModel):
    collections: int = 0
    documents: int = 0
    data_size: float = Field(0, alias="dataSize")


class ConnectResponse(BaseModel):
    success: bool = True
    message: str = "Connected successfully"
    database: str
    stats: ConnectionStats
    collections: List[str]


class StatusResponse(BaseModel):
    connected: bool
    database: Optional[str] = None


class BulkDeleteRequest(BaseModel):
    # Shape is checked by services.mutations.bulk_delete.
    ids: Any = None


class PruneRequest(BaseModel):
    days: int = DEFAULT_PRUNE_DAYS
    date_field: str = Field(DEFAULT_DATE_FIELD, alias="dateField")

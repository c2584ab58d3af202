from fastapi import APIRouter, Depends

from ..dependencies import get_conn_mgr
from ..schemas import ConnectRequest, ConnectResponse, StatusResponse
from ..services.mongo import ConnectionManager

router = APIRouter(tags=["connections"])


@router.post("/connect", response_model=ConnectResponse)
def connect(req: ConnectRequest, conn_mgr: ConnectionManager = Depends(get_conn_mgr)):
    info = conn_mgr.connect(req.url, req.database)
    return {"success": True, "message": "Connected successfully", **info}


@router.post("/disconnect")
def disconnect(conn_mgr: ConnectionManager = Depends(get_conn_mgr)):
    closed = conn_mgr.disconnect()
    return {"success": True, "message": "Disconnected" if closed else "Not connected"}


@router.get("/status", response_model=StatusResponse)
def status(conn_mgr: ConnectionManager = Depends(get_conn_mgr)):
    return conn_mgr.status()

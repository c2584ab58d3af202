from fastapi import Depends, Request
from pymongo.database import Database

from .config import Settings
from .services.mongo import ConnectionManager


def get_conn_mgr(request: Request) -> ConnectionManager:
    return request.app.state.conn_mgr


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(conn_mgr: ConnectionManager = Depends(get_conn_mgr)) -> Database:
    """Live database handle; raises NotConnectedError (503) when nothing is connected."""
    return conn_mgr.get_database()

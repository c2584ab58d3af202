from typing import Any, Callable, Dict, NamedTuple, Optional
from urllib.parse import urlsplit
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError
import threading

from ..errors import ConnectionFailedError, NotConnectedError, ValidationError
from ..logger import get_logger
from .browser import database_stats

logger = get_logger("services.mongo")

DEFAULT_DATABASE = "test"
CONNECT_TIMEOUT_MS = 10000
SERVER_SELECTION_TIMEOUT_MS = 10000


class _Connection(NamedTuple):
    client: Any
    database: str


def database_name_from_url(url: str, database: Optional[str] = None) -> str:
    """Explicit name, else the URL path segment (``mongodb://host/<db>?opts``), else the fallback."""
    if database and database.strip():
        return database.strip()
    try:
        path = urlsplit(url).path
    except ValueError:
        path = ""
    name = path.lstrip("/").split("/")[0]
    return name or DEFAULT_DATABASE


def describe_database(db: Database) -> Dict[str, Any]:
    """Database name, headline stats and collection names."""
    stats = database_stats(db)
    return {
        "database": db.name,
        "stats": {
            "collections": stats["collections"],
            "documents": stats["documents"],
            "dataSize": stats["dataSize"],
        },
        "collections": sorted(db.list_collection_names()),
    }


class ConnectionManager:
    """
    Owns the single active MongoClient.
    Connect/disconnect are serialized; readers only ever see a fully published snapshot.
    """

    def __init__(self, client_factory: Callable[..., Any] = MongoClient) -> None:
        self._lock = threading.Lock()
        self._client_factory = client_factory
        self._conn: Optional[_Connection] = None

    def connect(self, url: Optional[str], database: Optional[str] = None, replace: bool = True) -> Optional[Dict[str, Any]]:
        """Open a new connection, closing any previous one.

        With ``replace=False`` an existing live connection is kept and None is returned.
        """
        if not url or not url.strip():
            raise ValidationError("MongoDB URL is required")
        url = url.strip()
        with self._lock:
            if not replace and self._conn is not None:
                return None
            self._close_current()
            db_name = database_name_from_url(url, database)
            client = None
            try:
                client = self._client_factory(
                    url,
                    connectTimeoutMS=CONNECT_TIMEOUT_MS,
                    serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS,
                )
                # Trigger server selection to validate connection
                client.admin.command("ping")
                info = describe_database(client[db_name])
            except (PyMongoError, ValueError, TypeError) as e:
                if client is not None:
                    client.close()
                logger.error("Connection to database %r failed: %s", db_name, e)
                raise ConnectionFailedError(f"Connection failed: {e}") from e
            self._conn = _Connection(client, db_name)
        logger.info("Connected to database %r (%d collections)", db_name, len(info["collections"]))
        return info

    def connect_with_retry(
        self,
        url: str,
        database: Optional[str] = None,
        delay: float = 5,
        stop_event: Optional[threading.Event] = None,
    ) -> bool:
        """Startup path: retry on a fixed delay until connected, stopped, or another caller connected first."""
        stop = stop_event or threading.Event()
        attempt = 0
        while not stop.is_set():
            attempt += 1
            try:
                if self.connect(url, database, replace=False) is None:
                    logger.info("Connection already established; startup auto-connect skipped")
                    return False
                return True
            except ConnectionFailedError:
                logger.warning("Auto-connect attempt %d failed; retrying in %ss", attempt, delay)
            stop.wait(delay)
        return False

    def disconnect(self) -> bool:
        with self._lock:
            closed = self._close_current()
        if closed:
            logger.info("Disconnected")
        return closed

    def get_database(self) -> Database:
        conn = self._conn
        if conn is None:
            raise NotConnectedError()
        return conn.client[conn.database]

    def status(self) -> Dict[str, Any]:
        conn = self._conn
        return {"connected": conn is not None, "database": conn.database if conn else None}

    def _close_current(self) -> bool:
        # Caller holds the lock.
        conn, self._conn = self._conn, None
        if conn is None:
            return False
        try:
            conn.client.close()
        except PyMongoError as e:
            logger.warning("Error while closing previous client: %s", e)
        return True

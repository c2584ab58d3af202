import threading
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, settings as default_settings
from .errors import ConsoleError
from .logger import get_logger, setup_logging
from .middleware import FixedWindowLimiter, RateLimitMiddleware, SecurityHeadersMiddleware
from .routers import collections, connections, databases, documents
from .services.mongo import ConnectionManager

logger = get_logger("main")


def _start_auto_connect(app: FastAPI) -> Optional[threading.Thread]:
    cfg: Settings = app.state.settings
    if not cfg.mongodb_uri:
        return None
    conn_mgr: ConnectionManager = app.state.conn_mgr
    stop = app.state.stop_event
    thread = threading.Thread(
        target=conn_mgr.connect_with_retry,
        args=(cfg.mongodb_uri, cfg.mongodb_database, cfg.connect_retry_delay, stop),
        name="mongo-auto-connect",
        daemon=True,
    )
    thread.start()
    logger.info("Auto-connect started (retry every %ss)", cfg.connect_retry_delay)
    return thread


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.stop_event = threading.Event()
    thread = _start_auto_connect(app)
    try:
        yield
    finally:
        app.state.stop_event.set()
        # Both can wait on a connect attempt still in flight.
        if thread is not None:
            await run_in_threadpool(thread.join, 1)
        await run_in_threadpool(app.state.conn_mgr.disconnect)


def _register_error_handlers(app: FastAPI, debug: bool) -> None:
    @app.exception_handler(ConsoleError)
    async def console_error_handler(request: Request, exc: ConsoleError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{where}: {first.get('msg')}" if where else str(first.get("msg", "Invalid request"))
        return JSONResponse({"error": message}, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        body = {"error": "Internal server error"}
        if debug:
            body["details"] = str(exc)
        return JSONResponse(body, status_code=500)


def create_app(cfg: Optional[Settings] = None, conn_mgr: Optional[ConnectionManager] = None) -> FastAPI:
    cfg = cfg or default_settings
    setup_logging(cfg.log_level, cfg.log_file)

    app = FastAPI(title="MongoDB Admin Console", version="0.1.0", lifespan=lifespan)
    app.state.settings = cfg
    app.state.conn_mgr = conn_mgr or ConnectionManager()
    app.state.stop_event = threading.Event()

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials="*" not in cfg.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RateLimitMiddleware, limiter=FixedWindowLimiter(cfg.rate_limit_max, cfg.rate_limit_window))
    app.add_middleware(SecurityHeadersMiddleware)

    _register_error_handlers(app, cfg.debug)

    # Routers
    app.include_router(connections.router, prefix="/api")
    app.include_router(databases.router, prefix="/api")
    app.include_router(collections.router, prefix="/api")
    app.include_router(documents.router, prefix="/api")

    @app.get("/api/health")
    def health():
        return {"status": "ok", **app.state.conn_mgr.status()}

    static_dir = Path(cfg.static_dir)
    if static_dir.is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=default_settings.host, port=default_settings.port)

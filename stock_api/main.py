# stock_api/main.py
from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import inspect, text
from sqlalchemy.orm import Session
from sqlalchemy.schema import CreateTable
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import FileResponse, JSONResponse
from starlette.staticfiles import StaticFiles

from stock_api.core.logging import mask_url, setup_logging
from stock_api.core.settings import settings
from stock_api.crud import product as crud
from stock_api.crud.product import StoreUnavailableError
from stock_api.database import engine, get_db, init_db_if_requested, session_scope
from stock_api.models.product import Product
from stock_api.routers.product import router as products_router

APP_STARTED_MONO = time.monotonic()
APP_STARTED_TS = int(time.time())

# --- Logging ---
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger("stock-api")

PRODUCTS_TABLE = Product.__tablename__


def _products_ddl() -> str:
    return str(CreateTable(Product.__table__).compile(engine)).rstrip() + ";"


def _static_dir() -> Optional[Path]:
    if not settings.STATIC_DIR:
        return None
    p = Path(settings.STATIC_DIR)
    return p if p.is_dir() else None


STATIC_DIR = _static_dir()

tags_metadata = [
    {"name": "health", "description": "Liveness/Readiness checks"},
    {"name": "products", "description": "Product CRUD & search"},
]


def _get_req_id_from_headers(request: Request) -> str:
    # X-Request-ID first, then X-Correlation-ID; otherwise generate one
    return (
        request.headers.get("x-request-id")
        or request.headers.get("x-correlation-id")
        or uuid.uuid4().hex[:12]
    )


def _error(request: Request, status_code: int, message, headers: Optional[dict] = None) -> JSONResponse:
    hdrs = dict(headers or {})
    hdrs.setdefault("X-Request-ID", _get_req_id_from_headers(request))
    return JSONResponse(status_code=status_code, content={"error": message}, headers=hdrs)


# --- Middleware ---
async def request_context_mw(request: Request, call_next):
    """
    - propagates/generates X-Request-ID
    - rejects bodies over MAX_BODY_SIZE_BYTES (Content-Length based)
    - adds security headers and X-Process-Time
    """
    req_id = _get_req_id_from_headers(request)

    if settings.MAX_BODY_SIZE_BYTES > 0:
        cl = request.headers.get("content-length")
        if cl is not None and cl.isdigit() and int(cl) > settings.MAX_BODY_SIZE_BYTES:
            return JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={"error": "Payload too large"},
                headers={"X-Request-ID": req_id},
            )

    start = time.perf_counter()
    response: Response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000

    response.headers.setdefault("X-Request-ID", req_id)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    response.headers.setdefault("X-App-Version", settings.APP_VERSION)
    response.headers.setdefault("X-Process-Time", f"{duration_ms:.1f}ms")
    return response


def startup_check() -> None:
    """
    Log DB connectivity, table presence and product count.
    Never raises: the API starts anyway and answers 500/503 until the DB is fixed.
    """
    logger.info("DB config: %s", mask_url(settings.DATABASE_URL))
    try:
        if init_db_if_requested():
            logger.info("DB_CREATE_ALL=1: tables created if missing")
        if not inspect(engine).has_table(PRODUCTS_TABLE):
            logger.error("Table %r does not exist. Create it with:\n%s", PRODUCTS_TABLE, _products_ddl())
            return
        with session_scope() as db:
            total = crud.count(db)
        logger.info("DB startup check OK (table=%s, products=%d)", PRODUCTS_TABLE, total)
    except Exception:
        logger.exception("DB startup check FAILED (is the database running and reachable?)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    startup_check()
    yield


app = FastAPI(
    title=settings.APP_TITLE,
    version=settings.APP_VERSION,
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

app.middleware("http")(request_context_mw)

_cors = settings.cors_origins
if _cors:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors,
        # browsers reject credentials with a wildcard origin
        allow_credentials="*" not in _cors,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time", "X-App-Version"],
    )


# --- Exception handlers: every error body is {"error": ...} ---
@app.exception_handler(StoreUnavailableError)
async def _store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    # details were already logged by the store
    return _error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error, please try again later.")


@app.exception_handler(RequestValidationError)
async def _validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg", "Invalid request")
    return _error(request, status.HTTP_400_BAD_REQUEST, f"{where}: {msg}" if where else msg)


@app.exception_handler(StarletteHTTPException)
async def _starlette_http_exc_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if exc.status_code == status.HTTP_404_NOT_FOUND and detail == "Not Found":
        detail = f"Not Found: {request.url.path}"
    elif exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        detail = f"Method Not Allowed: {request.method} {request.url.path}"
    return _error(request, exc.status_code, detail, exc.headers)


@app.exception_handler(HTTPException)
async def _http_exc_handler(request: Request, exc: HTTPException):
    return _error(request, exc.status_code, exc.detail, exc.headers)


@app.exception_handler(Exception)
async def _unhandled_exc_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    return _error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")


# --- Routes: health ---
@app.get("/__version__", tags=["health"])
def version_meta():
    return {"app_version": settings.APP_VERSION, "started_at": APP_STARTED_TS}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


@app.get("/health/uptime", tags=["health"])
def health_uptime():
    return {"uptime_seconds": round(time.monotonic() - APP_STARTED_MONO, 3), "started_at": APP_STARTED_TS}


@app.get("/health/db", tags=["health"])
def health_db(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok", "db": "up", "dialect": db.get_bind().dialect.name}
    except Exception:
        logger.exception("DB health check failed")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="DB not ready")


@app.get("/health/ready", tags=["health"])
def health_ready(db: Session = Depends(get_db)):
    """Ready when the DB answers and the products table exists."""
    try:
        present = inspect(db.get_bind()).has_table(PRODUCTS_TABLE)
    except Exception:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Not ready")
    if not present:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Not ready (table {PRODUCTS_TABLE!r} missing)",
        )
    return {"ready": True}


# --- Routers ---
app.include_router(products_router)

# --- Frontend ---
if STATIC_DIR is not None:
    @app.get("/", include_in_schema=False)
    def index():
        return FileResponse(STATIC_DIR / "index.html")

    # registered last so the API routes above take precedence
    app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="static")
else:
    @app.get("/", tags=["health"])
    def root():
        return {"name": settings.APP_TITLE, "version": settings.APP_VERSION}


def run() -> None:
    import uvicorn

    logger.info("Serving on http://%s:%d (try /api/produtos)", settings.HOST, settings.PORT)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()

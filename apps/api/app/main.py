from contextlib import asynccontextmanager

from fastapi import FastAPI
import os

from app.core.logs import emit

APP_VERSION = os.getenv("APP_VERSION", "0.1.0")


def auto_migrate() -> bool:
    if os.getenv("AUTO_MIGRATE", "0").strip() != "1":
        return False
    from app.core.migrate import upgrade_head

    upgrade_head()
    emit("info", "db.migrated", "alembic upgrade head", None, __name__)
    return True


@asynccontextmanager
async def _lifespan(app: FastAPI):
    auto_migrate()
    yield


app = FastAPI(title="Play-by-Post Campaign API", version=APP_VERSION, lifespan=_lifespan)

# === OBSERVABILITY FOUNDATIONS ===
# - X-Request-Id in/out (missing -> generated; always echoed back; also on errors)
# - Error envelope keys: error, message, request_id, details
# - /health keys: status, version, db, last_error_summary
import uuid
from typing import Any, Optional
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.db import db_health

_last_error: Optional[str] = None


def _err_envelope(error: str, message: str, request_id: Optional[str], details: Any, status_code: int):
    headers = {}
    if request_id:
        headers["X-Request-Id"] = request_id
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "request_id": request_id,
            "details": details,
        },
        headers=headers,
    )


@app.middleware("http")
async def _request_id_mw(request: Request, call_next):
    rid = request.headers.get("X-Request-Id") or uuid.uuid4().hex.upper()
    request.state.request_id = rid
    emit("info", "http.request.start", f"{request.method} {request.url.path}", rid, __name__)
    try:
        resp = await call_next(request)
    except Exception as e:
        emit("error", "http.request.exception", str(e), rid, __name__)
        raise
    resp.headers["X-Request-Id"] = rid
    emit("info", "http.request.end", f"{request.method} {request.url.path} -> {getattr(resp,'status_code',None)}", rid, __name__)
    return resp


@app.exception_handler(StarletteHTTPException)
async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
    global _last_error
    rid = getattr(request.state, "request_id", None)
    detail = exc.detail
    if isinstance(detail, dict):
        error = str(detail.get("error") or "http_error")
        message = str(detail.get("message") or error)
        details = detail.get("details") or {}
    else:
        error, message, details = "http_error", str(detail), {"status_code": exc.status_code}
    if exc.status_code >= 500:
        _last_error = f"{error}: {message}"
    return _err_envelope(error, message, rid, details, exc.status_code)


@app.exception_handler(RequestValidationError)
async def _validation_exc_handler(request: Request, exc: RequestValidationError):
    rid = getattr(request.state, "request_id", None)
    return _err_envelope("validation_error", "request validation failed", rid, exc.errors(), 422)


@app.exception_handler(Exception)
async def _unhandled_exc_handler(request: Request, exc: Exception):
    global _last_error
    rid = getattr(request.state, "request_id", None)
    _last_error = f"{type(exc).__name__}: {exc}"
    emit("error", "http.unhandled", str(exc), rid, __name__, type=type(exc).__name__)
    return _err_envelope("internal_error", "internal server error", rid, {"type": type(exc).__name__}, 500)
# === END OBSERVABILITY FOUNDATIONS ===


@app.get("/health")
def health():
    db = db_health()
    return {
        "status": "ok" if db.get("status") == "ok" else "degraded",
        "version": os.getenv("APP_VERSION", "0.1.0"),
        "db": db,
        "last_error_summary": _last_error,
    }


from app.modules.campaigns.router import router as campaigns_router
from app.modules.characters.router import router as characters_router
from app.modules.notifications.router import router as notifications_router
from app.modules.posts.router import router as posts_router
from app.modules.rolls.router import router as rolls_router
from app.modules.scenes.router import router as scenes_router

app.include_router(campaigns_router)
app.include_router(characters_router)
app.include_router(scenes_router)
app.include_router(posts_router)
app.include_router(rolls_router)
app.include_router(notifications_router)

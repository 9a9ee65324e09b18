import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# .env from the project root wherever uvicorn is started
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from medlens.api.admin import router as admin_router
from medlens.api.analysis import router as analysis_router
from medlens.api.auth import router as auth_router
from medlens.api.deps import get_inference_client
from medlens.api.patients import router as patients_router
from medlens.api.timeline import router as timeline_router
from medlens.api.uploads import router as uploads_router
from medlens.api.visits import router as visits_router
from medlens.core.config import is_inference_configured, is_storage_configured, settings
from medlens.core.database import engine, init_db
from medlens.core.errors import StorageError
from medlens.core.rate_limit import limiter
from medlens.logging import setup_logging
from medlens.models import ErrorLog
from medlens.services.analysis import sweep_stale
from medlens.services.inference import InferenceClient
from medlens.services.report_pdf import ReportRenderer
from medlens.services.storage import ObjectStorage
from medlens.services.uploads import expire_stale_uploads

setup_logging(level=logging.INFO)
log = logging.getLogger("medlens")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


def _startup_sweep() -> None:
    with Session(engine) as db:
        expired = expire_stale_uploads(db)
        swept = sweep_stale(db)
    if expired or swept:
        log.info("Startup sweep: %d uploads expired, %d analyses failed", expired, swept)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    # built once per process and injected through api/deps
    app.state.inference = InferenceClient.from_settings()
    app.state.storage = ObjectStorage.from_settings()
    app.state.renderer = ReportRenderer()
    log.info("HF_API_KEY loaded: %s", "yes" if is_inference_configured() else "NO (set HF_API_KEY in .env)")
    if is_storage_configured():
        try:
            app.state.storage.ensure_bucket()
        except StorageError as e:
            log.warning("Object storage not reachable at startup: %s", e.message)
    else:
        log.warning("Object storage credentials missing (STORAGE_ACCESS_KEY / STORAGE_SECRET_KEY)")
    _startup_sweep()
    yield


app = FastAPI(
    title="MedLens API",
    description="Clinical document management and AI-assisted document analysis",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, message: str, headers: dict | None = None, **extra) -> JSONResponse:
    body = {
        "success": False,
        "message": message,
        "status_code": status_code,
        "request_id": getattr(request.state, "request_id", None),
    }
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("Rate limit exceeded: path=%s", request.url.path)
    return _error_response(request, 429, "Too many requests. Please wait a minute and try again.")


def _validation_error_message(exc: RequestValidationError) -> str:
    errs = exc.errors()
    if not errs:
        return "Invalid request"
    first = errs[0]
    loc = [str(p) for p in (first.get("loc") or []) if p not in ("body", "query", "path")]
    field = ".".join(loc)
    msg = first.get("msg") or "Invalid value"
    return f"{field}: {msg}" if field else msg


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.info("Request validation error (422): path=%s method=%s", request.url.path, request.method)
    detail = [{"loc": list(e.get("loc") or []), "msg": e.get("msg"), "type": e.get("type")} for e in errs]
    return _error_response(request, 422, _validation_error_message(exc), detail=detail)


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error_response(request, exc.status_code, message, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc)
    try:
        with Session(engine) as db:
            db.add(
                ErrorLog(
                    user_id=getattr(request.state, "user_id", None),
                    endpoint=request.url.path,
                    method=request.method,
                    error_message=str(exc)[:2000],
                    stack_trace=traceback.format_exc()[:10000],
                )
            )
            db.commit()
    except Exception as e:
        log.warning("ErrorLog write failed: %s", e)
    return _error_response(request, 500, "Internal server error")


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for _router in (
    auth_router,
    patients_router,
    uploads_router,
    analysis_router,
    timeline_router,
    visits_router,
    admin_router,
):
    app.include_router(_router, prefix="/api")


@app.get("/health")
def health():
    return {
        "status": "ok",
        "environment": settings.environment,
        "inference_configured": is_inference_configured(),
        "storage_configured": is_storage_configured(),
    }


@app.get("/health/ai")
def health_ai(inference: InferenceClient = Depends(get_inference_client)):
    ok, latency_ms, error = inference.ping()
    return {"status": "ok" if ok else "error", "model": settings.hf_model, "latency_ms": latency_ms, "error": error}

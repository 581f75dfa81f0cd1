from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

import config
from audit import ActorContext
from database import init_db, make_engine, make_session_factory
from errors import PasswordInvalidError, PasswordRequiredError, ShareError, localize, pick_locale
from file_service import FileService
from records import FileRecord, LogRecord
from schemas import FileOut, LogOut, MessageOut, StatsOut, UploadOut
from share_routes import attachment, flag_unlogged, get_actor, get_service, router as share_router
from share_store import SqlShareStore

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


# ─── Response helpers ─────────────────────────────────────────────────────────

def _file_out(f: FileRecord) -> FileOut:
    return FileOut(id=f.id, name=f.name, size=f.size, created_at=f.created_at,
                   expires_at=f.expires_at, shared=f.shared)


def _log_out(l: LogRecord) -> LogOut:
    return LogOut(id=l.id, file_id=l.file_id, file_name=l.file_name, action=l.action,
                  ip_address=l.ip_address, user_agent=l.user_agent, details=l.details,
                  timestamp=l.timestamp)


def _error_response(request: Request, status_code: int, code: str, **extra) -> JSONResponse:
    locale = pick_locale(request.headers.get("Accept-Language"))
    return JSONResponse(status_code=status_code, content={"message": localize(code, locale), **extra})


# ─── Exception handlers ───────────────────────────────────────────────────────

async def share_error_handler(request: Request, exc: ShareError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc.detail or exc.code}")
    extra = {}
    if isinstance(exc, (PasswordRequiredError, PasswordInvalidError)):
        # same prompt signal for a missing and a wrong password
        extra["passwordRequired"] = True
    return _error_response(request, exc.status_code, exc.code, **extra)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.debug(f"Rejected request to {request.url.path}: {exc.errors()}")
    return _error_response(request, 400, "validation_error")


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error_response(request, 500, "internal_error")


# ─── File routes ──────────────────────────────────────────────────────────────

def upload_file(
    response: Response,
    file: Optional[UploadFile] = File(None),
    name: str = Form(...),
    key: str = Form(...),
    original_size: int = Form(..., alias="originalSize"),
    duration_symbol: str = Form("never", alias="durationSymbol"),
    password: Optional[str] = Form(None),
    service: FileService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    content = file.file.read() if file is not None else b""
    outcome = service.upload(
        content, key, name, original_size,
        duration=duration_symbol, password=password or None, actor=actor,
    )
    flag_unlogged(response, outcome.logged)
    f = outcome.value
    return UploadOut(id=f.id, name=f.name, size=f.size, created_at=f.created_at, expires_at=f.expires_at)


def list_files(service: FileService = Depends(get_service)):
    return [_file_out(f) for f in service.list_files()]


def list_shared_files(service: FileService = Depends(get_service)):
    return [_file_out(f) for f in service.list_shared_files()]


def download_file(
    file_id: int,
    service: FileService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    outcome = service.download(file_id, actor=actor)
    return attachment(outcome.value, outcome.logged)


def delete_file(
    file_id: int,
    response: Response,
    service: FileService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    outcome = service.delete(file_id, actor=actor)
    flag_unlogged(response, outcome.logged)
    return MessageOut(message="File deleted successfully")


def file_logs(file_id: int, service: FileService = Depends(get_service)):
    return [_log_out(l) for l in service.logs(file_id)]


def all_logs(service: FileService = Depends(get_service)):
    return [_log_out(l) for l in service.logs()]


def storage_stats(service: FileService = Depends(get_service)):
    return StatsOut(**service.stats())


def health():
    return {"status": "ok", "service": "SecureFileSync", "version": "1.0.0"}


# ─── App factory ──────────────────────────────────────────────────────────────

def create_app(service: Optional[FileService] = None) -> FastAPI:
    """Build the API around ``service``; without one, a SQL-backed service on DATABASE_URL."""
    engine = None
    if service is None:
        engine = make_engine(config.DATABASE_URL)
        service = FileService(SqlShareStore(make_session_factory(engine)))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if engine is not None:
            init_db(engine)
            logger.info(f"Database ready: {engine.url.render_as_string(hide_password=True)}")
        yield
        if engine is not None:
            engine.dispose()

    app = FastAPI(
        title="SecureFileSync API",
        description="Client-side encrypted file storage with expiring, password-protected share links",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ShareError, share_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.add_api_route("/health", health, methods=["GET"], tags=["System"])
    app.add_api_route("/api/files/upload", upload_file, methods=["POST"],
                      response_model=UploadOut, status_code=201, tags=["Files"])
    app.add_api_route("/api/files", list_files, methods=["GET"],
                      response_model=List[FileOut], tags=["Files"])
    app.add_api_route("/api/files/shared", list_shared_files, methods=["GET"],
                      response_model=List[FileOut], tags=["Files"])
    app.add_api_route("/api/files/{file_id}/download", download_file, methods=["GET"], tags=["Files"])
    app.add_api_route("/api/files/{file_id}/logs", file_logs, methods=["GET"],
                      response_model=List[LogOut], tags=["Audit"])
    app.add_api_route("/api/files/{file_id}", delete_file, methods=["DELETE"],
                      response_model=MessageOut, tags=["Files"])
    app.add_api_route("/api/logs", all_logs, methods=["GET"],
                      response_model=List[LogOut], tags=["Audit"])
    app.add_api_route("/api/stats", storage_stats, methods=["GET"],
                      response_model=StatsOut, tags=["Files"])
    app.include_router(share_router)
    return app


app = create_app()

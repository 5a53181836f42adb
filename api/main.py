import logging
import sys
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request

import api.shared.entities.registry  # noqa: F401
from api.shared.dtos import HealthCheckResponse
from api.shared.exceptions import ChatDeskException
from api.shared.response import ResponseModel
from core.logging import configure_logging
from core.settings import SETTINGS
from di.container import ApplicationContainer as DependencyContainer

configure_logging()

logger = logging.getLogger("chatdesk")

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "FILE_TOO_LARGE",
    429: "RATE_LIMITED",
}


class CustomFastAPI(FastAPI):
    container: DependencyContainer


async def _open_resources(infra) -> None:
    database = infra.database()
    await database.init()
    async with database.engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Database reachable")

    realtime = infra.redis_db()
    await realtime.init()
    await realtime.connect()
    logger.info("Redis reachable")

    storage = infra.minio_client()
    await storage.init()
    await storage.ensure_bucket()
    logger.info("Storage bucket '%s' ready", storage.bucket_name)

    await infra.http_client().init()


async def _close_resources(infra) -> None:
    await infra.http_client().shutdown()
    await infra.minio_client().shutdown()
    await infra.redis_db().disconnect()
    await infra.database().shutdown()


@asynccontextmanager
async def lifespan(_app: CustomFastAPI):
    started = time.perf_counter()
    infra = _app.container.infrastructure
    try:
        await _open_resources(infra)
    except Exception:
        logger.exception("Startup failed")
        raise
    logger.info("Startup finished in %.2fs", time.perf_counter() - started)

    yield

    await _close_resources(infra)
    logger.info("Shutdown finished")


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    body = ResponseModel.error(code, message)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def register_exception_handlers(_app: FastAPI) -> None:
    @_app.exception_handler(ChatDeskException)
    async def chatdesk_exception_handler(request: Request, exc: ChatDeskException):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _error_response(exc.status_code, exc.error_code, exc.message)

    @_app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
        return _error_response(422, "VALIDATION_ERROR", message)

    @_app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        return _error_response(exc.status_code, code, str(exc.detail))

    @_app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


def create_fastapi_app() -> CustomFastAPI:
    _app = CustomFastAPI(
        title="ChatDesk API",
        description="Chat widget backend: LLM chat, media, RAG and admin takeover",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    _app.container = DependencyContainer()
    _app.container.wire(modules=[sys.modules[__name__]])
    _app.container.init_resources()

    _app.add_middleware(
        CORSMiddleware,
        allow_origins=SETTINGS.APP.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
        max_age=86400,
    )
    register_exception_handlers(_app)

    from api.features.admin.router import router as admin_router
    from api.features.chat.router import router as chat_router
    from api.features.conversation.router import router as conversation_router
    from api.features.documents.router import router as documents_router
    from api.features.enhance.router import router as enhance_router
    from api.features.search.router import router as search_router
    from api.features.takeover.router import router as takeover_router
    from api.features.transcribe.router import router as transcribe_router
    from api.features.uploads.router import router as uploads_router
    from api.features.vision.router import router as vision_router

    _app.include_router(
        conversation_router, prefix="/api/v1/conversations", tags=["Conversations"]
    )
    _app.include_router(chat_router, prefix="/api/v1/chat", tags=["Chat"])
    _app.include_router(transcribe_router, prefix="/api/v1/transcribe", tags=["Media"])
    _app.include_router(vision_router, prefix="/api/v1/vision", tags=["Media"])
    _app.include_router(uploads_router, prefix="/api/v1/upload", tags=["Media"])
    _app.include_router(enhance_router, prefix="/api/v1/enhance", tags=["Admin"])
    _app.include_router(search_router, prefix="/api/v1/rag-search", tags=["RAG"])
    _app.include_router(documents_router, prefix="/api/v1/documents", tags=["Documents"])
    _app.include_router(takeover_router, prefix="/api/v1/takeover", tags=["Admin"])
    _app.include_router(admin_router, prefix="/api/v1/admin", tags=["Admin"])

    return _app


app = create_fastapi_app()


@app.get("/")
async def root():
    return {"message": "ChatDesk API is running", "status": "ok"}


@app.get("/health", response_model=ResponseModel[HealthCheckResponse])
async def health():
    return ResponseModel.success(data=HealthCheckResponse(status="ok"))


@app.get("/ready")
async def ready():
    return {"status": "ok"}

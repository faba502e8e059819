"""FastAPI 应用入口。"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging
import time
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from genrunner.api.router import api_router
from genrunner.application.container import get_executor, get_registry, shutdown_container_resources
from genrunner.config import Settings, get_settings
from genrunner.infra.logging.context import bind_log_context
from genrunner.infra.logging.setup import configure_logging, shutdown_logging

settings = get_settings()
configure_logging(settings, process_role="api")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """启动时构建执行器并注册内置目录；关闭时释放供应商连接与日志监听器。"""
    get_executor()
    logger.info("dispatch service ready", extra={"event": "api.startup.succeeded", "payload_preview": get_registry().stats()})
    try:
        yield
    finally:
        await shutdown_container_resources()
        logger.info("dispatch service stopped", extra={"event": "api.shutdown.succeeded"})
        shutdown_logging()


def _log_request(request: Request, started: float, response: Response | None, exc: Exception | None) -> None:
    extra = {
        "op": f"{request.method} {request.url.path}",
        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
    }
    if exc is not None:
        logger.exception(
            "http request failed",
            extra={**extra, "event": "http.request.failed", "error_type": type(exc).__name__, "error": str(exc)},
        )
    elif response is not None:
        logger.info(
            "http request completed",
            extra={**extra, "event": "http.request.completed", "status_code": response.status_code},
        )


def create_app(app_settings: Settings) -> FastAPI:
    application = FastAPI(title=app_settings.app_name, lifespan=lifespan)

    origins = app_settings.cors_allowed_origins_list()
    if origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=app_settings.cors_allowed_methods_list(),
            allow_headers=app_settings.cors_allowed_headers_list(),
            allow_credentials=app_settings.cors_allow_credentials,
        )

    @application.middleware("http")
    async def attach_request_id(request: Request, call_next):
        """沿用调用方的 X-Request-Id，缺省时生成，并写回响应头。"""
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        started = time.perf_counter()
        with bind_log_context(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception as exc:
                _log_request(request, started, None, exc)
                raise
            _log_request(request, started, response, None)
        response.headers["X-Request-Id"] = request_id
        return response

    @application.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "environment": app_settings.environment}

    application.include_router(api_router)
    return application


app = create_app(settings)

"""日志初始化：统一 JSON 结构、异步队列写入与 DEBUG 路由开关。"""

from __future__ import annotations

import json
import logging
import logging.config
import re
import sys
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import SimpleQueue
from typing import Any

from genrunner.config import Settings
from genrunner.infra.logging.context import CONTEXT_KEYS, get_log_context

_listener: QueueListener | None = None

# fal 使用 "Authorization: Key <secret>"，其余为通用凭据字段。
_SECRET_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?i)(authorization\s*[:=]\s*(?:bearer|key)\s+)[^\s,;\"']+"),
    re.compile(r"(?i)((?:x-api-key|api_key|fal_key|token|secret)\"?\s*[:=]\s*\"?)[^\s,;\"']+"),
)

_NUMERIC_FIELDS = ("duration_ms", "status_code")
_PASSTHROUGH_FIELDS = ("external_service", "op", "error_type")


def redact_text(value: str | None, enabled: bool = True) -> str | None:
    """掩盖文本中的凭据值。"""
    if value is None or not enabled:
        return value
    text = str(value)
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1***", text)
    return text


def render_payload_preview(payload: Any, *, max_chars: int, redact: bool = True) -> str | None:
    """序列化 payload 并截断到 max_chars。"""
    if payload is None:
        return None
    if isinstance(payload, str):
        serialized = payload
    else:
        serialized = json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)
    preview = redact_text(serialized, redact) or ""
    if len(preview) > max_chars:
        return f"{preview[:max_chars]}...(truncated)"
    return preview


def _as_number(value: Any) -> int | float | None:
    if value is None or isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class DebugRoutingFilter(logging.Filter):
    """低于 min_level 的记录默认丢弃；指定模块或作业的 DEBUG 记录放行。"""

    def __init__(self, *, min_level: int, debug_modules: set[str], debug_job_ids: set[str]) -> None:
        super().__init__()
        self._min_level = min_level
        self._debug_prefixes = tuple(f"{item}." for item in debug_modules)
        self._debug_modules = debug_modules
        self._debug_job_ids = debug_job_ids

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= self._min_level:
            return True
        if record.levelno != logging.DEBUG:
            return False
        if record.name in self._debug_modules or record.name.startswith(self._debug_prefixes):
            return True
        job_id = getattr(record, "job_id", None) or get_log_context()["job_id"]
        return job_id in self._debug_job_ids


class ContextInjectionFilter(logging.Filter):
    """入队前把 contextvars 复制到 record 上，监听线程读不到协程上下文。"""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in get_log_context().items():
            if value is not None and getattr(record, key, None) is None:
                setattr(record, key, value)
        return True


class StructuredJsonFormatter(logging.Formatter):
    """每条记录输出一行 JSON。"""

    def __init__(self, *, service: str, redact: bool = True, payload_preview_chars: int = 512) -> None:
        super().__init__()
        self._service = service
        self._redact = redact
        self._payload_preview_chars = payload_preview_chars

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()
        error = getattr(record, "error", None)
        if error is None and record.exc_info:
            error = self.formatException(record.exc_info)

        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "service": self._service,
            "module": record.name,
            "event": getattr(record, "event", None),
            "message": redact_text(record.getMessage(), self._redact),
        }
        entry.update({key: getattr(record, key, None) or ctx[key] for key in CONTEXT_KEYS})
        entry.update({key: getattr(record, key, None) for key in _PASSTHROUGH_FIELDS})
        entry.update({key: _as_number(getattr(record, key, None)) for key in _NUMERIC_FIELDS})
        entry["error"] = redact_text(str(error), self._redact) if error is not None else None
        entry["payload_preview"] = render_payload_preview(
            getattr(record, "payload_preview", None),
            max_chars=self._payload_preview_chars,
            redact=self._redact,
        )
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(settings: Settings, *, process_role: str = "api") -> Path:
    """根记录器只挂队列处理器；监听线程写 JSONL 文件，ERROR 同时写 stderr。"""
    global _listener
    shutdown_logging()

    log_file = settings.log_dir / process_role / "genrunner.jsonl"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    queue_obj: SimpleQueue[logging.LogRecord] = SimpleQueue()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "handlers": {"queue": {"class": "logging.handlers.QueueHandler", "queue": queue_obj}},
            "root": {"level": "DEBUG", "handlers": ["queue"]},
        }
    )

    queue_handler = next(
        (item for item in logging.getLogger().handlers if isinstance(item, QueueHandler)),
        None,
    )
    if queue_handler is None:
        raise RuntimeError("queue logging handler is not configured")
    queue_handler.addFilter(ContextInjectionFilter())
    queue_handler.addFilter(
        DebugRoutingFilter(
            min_level=getattr(logging, settings.log_level.upper(), logging.INFO),
            debug_modules=set(settings.log_debug_modules_list()),
            debug_job_ids=set(settings.log_debug_job_ids_list()),
        )
    )

    formatter = StructuredJsonFormatter(
        service="genrunner",
        redact=settings.log_redact_secrets,
        payload_preview_chars=settings.log_payload_preview_chars,
    )
    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(formatter)

    _listener = QueueListener(queue_obj, file_handler, stderr_handler, respect_handler_level=True)
    _listener.start()

    for noisy in ("uvicorn.access", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return log_file


def shutdown_logging() -> None:
    global _listener
    if _listener is None:
        return
    try:
        _listener.stop()
        for handler in _listener.handlers:
            handler.close()
    finally:
        _listener = None

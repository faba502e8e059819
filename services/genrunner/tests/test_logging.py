"""日志测试：上下文注入、脱敏、载荷截断与 DEBUG 路由。"""

from __future__ import annotations

import json
import logging

from genrunner.infra.logging.context import bind_log_context, get_log_context
from genrunner.infra.logging.setup import (
    DebugRoutingFilter,
    StructuredJsonFormatter,
    redact_text,
    render_payload_preview,
)


def _record(level: int = logging.INFO, name: str = "genrunner.application.job_runner", **extra) -> logging.LogRecord:
    record = logging.LogRecord(name, level, __file__, 1, "job submitted", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_bind_log_context_restores_previous_values() -> None:
    with bind_log_context(job_id="j1", step="image"):
        with bind_log_context(job_id="j2"):
            assert get_log_context()["job_id"] == "j2"
            assert get_log_context()["step"] == "image"
        assert get_log_context()["job_id"] == "j1"
    assert get_log_context()["job_id"] is None


def test_formatter_emits_json_with_context() -> None:
    formatter = StructuredJsonFormatter(service="genrunner", payload_preview_chars=64)
    with bind_log_context(request_id="req-1", job_id="j1"):
        line = formatter.format(_record(event="job.submitted", op="flux", duration_ms="12.5"))
    entry = json.loads(line)

    assert entry["service"] == "genrunner"
    assert entry["event"] == "job.submitted"
    assert entry["request_id"] == "req-1"
    assert entry["job_id"] == "j1"
    assert entry["duration_ms"] == 12.5
    assert entry["ts"].endswith("Z")


def test_redaction_masks_credentials() -> None:
    assert redact_text("Authorization: Key abc123") == "Authorization: Key ***"
    assert redact_text("api_key=abc123") == "api_key=***"
    assert redact_text("api_key=abc123", enabled=False) == "api_key=abc123"


def test_payload_preview_is_truncated() -> None:
    preview = render_payload_preview({"prompt": "x" * 100}, max_chars=20)
    assert preview is not None
    assert preview.endswith("...(truncated)")
    assert render_payload_preview(None, max_chars=20) is None


def test_debug_routing_by_module_and_job_id() -> None:
    routing = DebugRoutingFilter(
        min_level=logging.INFO,
        debug_modules={"genrunner.infra.providers"},
        debug_job_ids={"j-debug"},
    )

    assert routing.filter(_record(logging.WARNING))
    assert not routing.filter(_record(logging.DEBUG))
    assert routing.filter(_record(logging.DEBUG, name="genrunner.infra.providers.http_queue"))
    assert routing.filter(_record(logging.DEBUG, job_id="j-debug"))
    with bind_log_context(job_id="j-debug"):
        assert routing.filter(_record(logging.DEBUG))


def test_payload_preview_masks_json_secrets_and_run_id_is_emitted() -> None:
    formatter = StructuredJsonFormatter(service="genrunner")
    with bind_log_context(run_id="run-1"):
        line = formatter.format(_record(payload_preview={"fal_key": "abc123", "prompt": "cat"}, status_code=200))
    entry = json.loads(line)

    assert entry["run_id"] == "run-1"
    assert entry["status_code"] == 200
    assert "abc123" not in entry["payload_preview"]
    assert '"prompt": "cat"' in entry["payload_preview"]

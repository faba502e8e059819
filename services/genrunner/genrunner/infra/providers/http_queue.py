"""队列式 HTTP 供应商：封装 fal 风格的提交、状态、结果、取消与上传接口。"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from genrunner.domain.enums import JobStatus
from genrunner.domain.models import JobStatusUpdate
from genrunner.infra.providers.base import PendingHandle

logger = logging.getLogger(__name__)

_STATUS_MAP: dict[str, JobStatus] = {
    "IN_QUEUE": JobStatus.queued,
    "IN_PROGRESS": JobStatus.processing,
    "COMPLETED": JobStatus.completed,
    "FAILED": JobStatus.failed,
    "CANCELLED": JobStatus.cancelled,
}


@dataclass(slots=True)
class QueueRequest:
    """单个排队请求的访问地址。"""
    request_id: str
    status_url: str
    response_url: str
    cancel_url: str


class HttpQueueProvider:
    """队列式 HTTP 供应商的异步客户端封装。"""

    def __init__(
        self,
        name: str,
        base_url: str,
        *,
        api_key: str | None = None,
        upload_url: str | None = None,
        timeout_seconds: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.name = name
        self._base_url = base_url.rstrip("/")
        self._upload_url = upload_url
        self._closed = False
        self._requests: dict[str, QueueRequest] = {}
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers=self._headers(api_key),
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            transport=transport,
        )

    @staticmethod
    def _headers(api_key: str | None) -> dict[str, str]:
        # 未配置密钥时不带认证头，兼容本地 mock 服务。
        if api_key:
            return {"Authorization": f"Key {api_key}"}
        return {}

    def _client_or_raise(self) -> httpx.AsyncClient:
        if self._closed:
            raise RuntimeError(f"{self.name} provider is already closed")
        return self._client

    async def aclose(self) -> None:
        """关闭底层 HTTP 连接池。"""
        if self._closed:
            return
        await self._client.aclose()
        self._closed = True

    async def _request(
        self,
        *,
        method: str,
        url: str,
        op: str,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        files: dict[str, Any] | None = None,
        payload_preview: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """发送 HTTP 请求并记录结构化日志。"""
        started = time.perf_counter()
        try:
            response = await self._client_or_raise().request(method, url, params=params, json=json_body, files=files)
            response.raise_for_status()
        except Exception as exc:
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            status_code = None
            if isinstance(exc, httpx.HTTPStatusError):
                status_code = exc.response.status_code
            logger.error(
                "provider request failed",
                extra={
                    "event": "provider.request.failed",
                    "external_service": self.name,
                    "op": op,
                    "duration_ms": duration_ms,
                    "status_code": status_code,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                    "payload_preview": payload_preview,
                },
            )
            raise
        logger.debug(
            "provider request completed",
            extra={
                "event": "provider.request.completed",
                "external_service": self.name,
                "op": op,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "status_code": response.status_code,
            },
        )
        return response

    def _request_urls(self, model_id: str, request_id: str) -> QueueRequest:
        base = f"{self._base_url}/{model_id}/requests/{request_id}"
        return QueueRequest(
            request_id=request_id,
            status_url=f"{base}/status",
            response_url=base,
            cancel_url=f"{base}/cancel",
        )

    def _lookup(self, job_id: str) -> QueueRequest:
        try:
            return self._requests[job_id]
        except KeyError as exc:
            raise KeyError(f"unknown {self.name} request: {job_id}") from exc

    async def submit(self, model_id: str, inputs: Mapping[str, Any]) -> PendingHandle:
        """提交请求并登记返回的状态/结果/取消地址。"""
        response = await self._request(
            method="POST",
            url=f"/{model_id}",
            op="queue.submit",
            json_body=dict(inputs),
            payload_preview={"model": model_id, "input_keys": sorted(inputs)},
        )
        payload = response.json()
        request_id = payload.get("request_id") or payload.get("requestId")
        if not request_id:
            raise RuntimeError(f"missing request id from {self.name} response")
        request_id = str(request_id)
        defaults = self._request_urls(model_id, request_id)
        self._requests[request_id] = QueueRequest(
            request_id=request_id,
            status_url=payload.get("status_url") or defaults.status_url,
            response_url=payload.get("response_url") or defaults.response_url,
            cancel_url=payload.get("cancel_url") or defaults.cancel_url,
        )
        logger.info(
            "provider job submitted",
            extra={"event": "provider.job.submitted", "external_service": self.name, "op": model_id, "job_id": request_id},
        )
        return PendingHandle(job_id=request_id)

    async def get_status(self, job_id: str) -> JobStatusUpdate:
        """查询排队状态并映射为本地作业状态。"""
        request = self._lookup(job_id)
        response = await self._request(
            method="GET",
            url=request.status_url,
            op="queue.status",
            params={"logs": 1},
            payload_preview={"request_id": job_id},
        )
        payload = response.json()
        raw_status = str(payload.get("status", "")).upper()
        status = _STATUS_MAP.get(raw_status, JobStatus.processing)
        error = payload.get("error")
        if status == JobStatus.completed and error:
            status = JobStatus.failed
        if status in (JobStatus.failed, JobStatus.cancelled):
            self._requests.pop(job_id, None)
        logs = [str(item.get("message", "")) for item in payload.get("logs") or [] if isinstance(item, dict)]
        return JobStatusUpdate(
            status=status,
            progress=payload.get("progress"),
            logs=logs or None,
            error=str(error) if error else None,
        )

    async def get_result(self, job_id: str) -> Any:
        request = self._lookup(job_id)
        response = await self._request(
            method="GET",
            url=request.response_url,
            op="queue.result",
            payload_preview={"request_id": job_id},
        )
        self._requests.pop(job_id, None)
        return response.json()

    async def cancel(self, job_id: str) -> None:
        request = self._lookup(job_id)
        await self._request(
            method="PUT",
            url=request.cancel_url,
            op="queue.cancel",
            payload_preview={"request_id": job_id},
        )
        self._requests.pop(job_id, None)

    async def upload_file(self, content: bytes, filename: str | None = None) -> str:
        """上传文件到供应商存储，返回可访问 URL。"""
        if not self._upload_url:
            raise RuntimeError(f"{self.name} provider has no upload url configured")
        name = filename or "upload.bin"
        response = await self._request(
            method="POST",
            url=self._upload_url,
            op="storage.upload",
            files={"file": (name, content)},
            payload_preview={"filename": name, "size_bytes": len(content)},
        )
        payload = response.json()
        url = payload.get("url") or payload.get("access_url")
        if not url:
            raise RuntimeError(f"missing url from {self.name} upload response")
        return str(url)

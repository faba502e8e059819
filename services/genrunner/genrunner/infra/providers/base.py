"""供应商契约：提交、查询状态、获取结果、可选取消与上传，以及作业句柄的两种形态。"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from genrunner.domain.enums import JobStatus
from genrunner.domain.models import JobStatusUpdate

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ImmediateHandle:
    """同步后端在 submit 内即完成，直接携带输出，无需轮询。"""
    output: Any
    job_id: str | None = None


@dataclass(frozen=True, slots=True)
class PendingHandle:
    """异步后端返回的作业 ID，需要轮询 get_status。"""
    job_id: str


JobHandle = ImmediateHandle | PendingHandle


@runtime_checkable
class Provider(Protocol):
    """每个生成后端都必须实现的最小接口；cancel/upload_file 为可选能力。"""
    name: str

    async def submit(self, model_id: str, inputs: Mapping[str, Any]) -> JobHandle | str: ...

    async def get_status(self, job_id: str) -> JobStatusUpdate | Mapping[str, Any]: ...

    async def get_result(self, job_id: str) -> Any: ...


def as_handle(value: JobHandle | str) -> JobHandle:
    """兼容直接返回字符串 ID 的供应商。"""
    if isinstance(value, (ImmediateHandle, PendingHandle)):
        return value
    return PendingHandle(job_id=str(value))


def supports_cancel(provider: Any) -> bool:
    return callable(getattr(provider, "cancel", None))


def supports_upload(provider: Any) -> bool:
    return callable(getattr(provider, "upload_file", None))


class CallableProvider:
    """进程内同步供应商：在 submit 中执行函数并返回 ImmediateHandle。"""

    def __init__(self, name: str, fn: Callable[[str, dict[str, Any]], Any]) -> None:
        self.name = name
        self._fn = fn
        self._results: dict[str, Any] = {}
        self._counter = 0

    async def submit(self, model_id: str, inputs: Mapping[str, Any]) -> ImmediateHandle:
        output = self._fn(model_id, dict(inputs))
        if inspect.isawaitable(output):
            output = await output
        self._counter += 1
        job_id = f"{self.name}-{self._counter}"
        self._results[job_id] = output
        logger.debug(
            "local provider completed inline",
            extra={"event": "provider.local.completed", "external_service": self.name, "op": model_id},
        )
        return ImmediateHandle(output=output, job_id=job_id)

    async def get_status(self, job_id: str) -> JobStatusUpdate:
        if job_id not in self._results:
            return JobStatusUpdate(status=JobStatus.failed, error=f"unknown job: {job_id}")
        return JobStatusUpdate(status=JobStatus.completed, output=self._results[job_id])

    async def get_result(self, job_id: str) -> Any:
        return self._results.get(job_id)


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value

"""作业运行器：提交到供应商并轮询至终态，维护进程内作业表。"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from genrunner.config import Settings
from genrunner.domain.enums import JobStatus
from genrunner.domain.errors import (
    DispatchError,
    JobCancelledError,
    JobNotFoundError,
    JobTimeoutError,
    ProviderError,
)
from genrunner.domain.models import ExecutionResult, Inputs, Job, JobStatusUpdate, RunOptions
from genrunner.infra.logging.context import bind_log_context
from genrunner.infra.providers.base import ImmediateHandle, Provider, as_handle, maybe_await, supports_cancel

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]
Clock = Callable[[], float]


@dataclass(slots=True)
class JobConfig:
    """单次作业的调用参数。"""
    provider: Provider
    model: str
    inputs: Inputs
    options: RunOptions = field(default_factory=RunOptions)


class JobRunner:
    """驱动单个供应商调用的状态机：pending → queued → processing → 终态。"""

    def __init__(
        self,
        *,
        timeout_seconds: float = 300.0,
        poll_interval_seconds: float = 2.0,
        max_poll_interval_seconds: float = 10.0,
        backoff_factor: float = 1.5,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._poll_interval_seconds = poll_interval_seconds
        self._max_poll_interval_seconds = max_poll_interval_seconds
        self._backoff_factor = backoff_factor
        self._sleep = sleep
        self._clock = clock
        self._jobs: dict[str, Job] = {}

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> JobRunner:
        params: dict[str, Any] = {
            "timeout_seconds": settings.job_timeout_seconds,
            "poll_interval_seconds": settings.poll_interval_seconds,
            "max_poll_interval_seconds": settings.max_poll_interval_seconds,
            "backoff_factor": settings.poll_backoff_factor,
        }
        params.update(overrides)
        return cls(**params)

    async def run(self, config: JobConfig) -> ExecutionResult:
        options = config.options
        provider = config.provider
        started = self._clock()
        job = Job(
            id="",
            status=JobStatus.pending,
            provider=provider.name,
            model=config.model,
            inputs=dict(config.inputs),
        )
        try:
            return await self._drive(job, provider, options, started)
        except Exception as exc:
            self._mark_failed(job, exc, options)
            raise

    async def _drive(self, job: Job, provider: Provider, options: RunOptions, started: float) -> ExecutionResult:
        handle = as_handle(
            await self._invoke(provider, "submit", lambda: provider.submit(job.model, job.inputs))
        )

        if isinstance(handle, ImmediateHandle):
            # 同步后端在 submit 内已完成，直接落为 completed，不进入轮询。
            job.id = handle.job_id or f"local-{uuid4().hex}"
            job.output = handle.output
            self._jobs[job.id] = job
            self._transition(job, JobStatus.completed, options)
            logger.info(
                "job completed inline",
                extra={
                    "event": "job.completed",
                    "external_service": provider.name,
                    "op": job.model,
                    "job_id": job.id,
                    "duration_ms": self._elapsed_ms(started),
                },
            )
            return self._result(job, handle.output, started)

        job.id = handle.job_id
        self._jobs[job.id] = job
        self._transition(job, JobStatus.queued, options)
        logger.info(
            "job submitted",
            extra={"event": "job.submitted", "external_service": provider.name, "op": job.model, "job_id": job.id},
        )

        if not options.wait:
            return self._result(job, {"job_id": job.id}, started)

        with bind_log_context(job_id=job.id):
            output = await self._poll(job, provider, options, started)
        logger.info(
            "job completed",
            extra={
                "event": "job.completed",
                "external_service": provider.name,
                "op": job.model,
                "job_id": job.id,
                "duration_ms": self._elapsed_ms(started),
            },
        )
        return self._result(job, output, started)

    async def _poll(self, job: Job, provider: Provider, options: RunOptions, started: float) -> Any:
        timeout = options.timeout_seconds if options.timeout_seconds is not None else self._timeout_seconds
        interval = self._poll_interval_seconds

        while self._clock() - started < timeout:
            raw = await self._invoke(provider, "get_status", lambda: provider.get_status(job.id), job_id=job.id)
            update = JobStatusUpdate.from_payload(raw)
            self._apply_update(job, update, options)

            if update.status == JobStatus.completed:
                output = update.output
                if output is None:
                    output = await self._invoke(
                        provider, "get_result", lambda: provider.get_result(job.id), job_id=job.id
                    )
                job.output = output
                return output
            if update.status == JobStatus.failed:
                raise ProviderError(update.error or "Job failed", provider=provider.name, job_id=job.id)
            if update.status == JobStatus.cancelled:
                raise JobCancelledError("Job was cancelled", provider=provider.name, job_id=job.id)

            logger.debug(
                "job still running",
                extra={"event": "job.poll.waiting", "op": job.status.value, "job_id": job.id, "duration_ms": interval * 1000},
            )
            await self._sleep(interval)
            interval = min(interval * self._backoff_factor, self._max_poll_interval_seconds)

        # 超时不会主动取消远端作业。
        raise JobTimeoutError(job.id, timeout, provider=provider.name)

    async def _invoke(
        self,
        provider: Provider,
        op: str,
        call: Callable[[], Any],
        *,
        job_id: str | None = None,
    ) -> Any:
        """调用供应商方法，将传输层异常统一包装为 ProviderError。"""
        try:
            return await maybe_await(call())
        except DispatchError:
            raise
        except Exception as exc:
            raise ProviderError(
                f"{provider.name} {op} failed: {exc}",
                provider=provider.name,
                job_id=job_id,
            ) from exc

    def _apply_update(self, job: Job, update: JobStatusUpdate, options: RunOptions) -> None:
        if update.logs is not None:
            job.logs = list(update.logs)
        if update.progress is not None:
            job.progress = update.progress
            if options.on_progress is not None:
                options.on_progress(update.progress, update.logs)
        if update.error:
            job.error = update.error
        self._transition(job, update.status, options)

    def _transition(self, job: Job, status: JobStatus, options: RunOptions) -> None:
        if job.status == status:
            return
        job.set_status(status)
        if options.on_status_change is not None:
            options.on_status_change(status)

    def _mark_failed(self, job: Job, exc: Exception, options: RunOptions) -> None:
        job.error = str(exc)
        if not isinstance(exc, JobCancelledError):
            self._transition(job, JobStatus.failed, options)
        logger.warning(
            "job failed",
            extra={
                "event": "job.failed",
                "external_service": job.provider,
                "op": job.model,
                "job_id": job.id or None,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )

    def _elapsed_ms(self, started: float) -> int:
        return max(0, int((self._clock() - started) * 1000))

    def _result(self, job: Job, output: Any, started: float) -> ExecutionResult:
        return ExecutionResult(
            output=output,
            duration_ms=self._elapsed_ms(started),
            provider=job.provider,
            model=job.model,
            job_id=job.id,
        )

    async def cancel(self, job_id: str, provider: Provider | None = None) -> Job:
        """尽力取消：供应商支持时调用其 cancel，本地记录总是标记为 cancelled。"""
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        try:
            if provider is not None and supports_cancel(provider):
                await self._invoke(provider, "cancel", lambda: provider.cancel(job_id), job_id=job_id)
        finally:
            job.set_status(JobStatus.cancelled)
            logger.info(
                "job cancelled",
                extra={"event": "job.cancelled", "external_service": job.provider, "job_id": job_id},
            )
        return job

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def list(self) -> list[Job]:
        return list(self._jobs.values())

    def clear_completed(self) -> int:
        """移除所有处于终态的作业，返回移除数量。"""
        finished = [job_id for job_id, job in self._jobs.items() if job.status.is_terminal]
        for job_id in finished:
            del self._jobs[job_id]
        return len(finished)

"""调度与作业接口：按名称运行定义，查询、取消与清理进程内作业。"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from genrunner.api.v1.schemas import ClearCompletedResponse, JobResponse, RunRequest, RunResponse
from genrunner.application.container import get_executor, get_job_runner
from genrunner.application.executor import Executor
from genrunner.application.job_runner import JobRunner
from genrunner.domain.errors import (
    DispatchError,
    JobNotFoundError,
    JobTimeoutError,
    PipelineStepError,
    ProviderError,
    ResolutionError,
    RoutingError,
    ValidationError,
)
from genrunner.domain.models import RunOptions

router = APIRouter()
logger = logging.getLogger(__name__)


def _executor() -> Executor:
    return get_executor()


def _job_runner() -> JobRunner:
    return get_job_runner()


def _to_http_error(exc: DispatchError) -> HTTPException:
    """将调度异常映射为 HTTP 状态码。"""
    if isinstance(exc, ResolutionError):
        return HTTPException(status_code=404, detail={"message": str(exc), "suggestions": exc.suggestions})
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail={"message": str(exc), "errors": exc.errors})
    if isinstance(exc, RoutingError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, JobNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, JobTimeoutError):
        return HTTPException(status_code=504, detail=str(exc))
    if isinstance(exc, ProviderError):
        return HTTPException(status_code=502, detail=str(exc))
    if isinstance(exc, PipelineStepError):
        return HTTPException(status_code=502, detail={"message": str(exc), "step": exc.step})
    return HTTPException(status_code=400, detail=str(exc))


@router.post("/run/{name:path}", response_model=RunResponse)
async def run_definition(
    name: str,
    payload: RunRequest,
    executor: Executor = Depends(_executor),
) -> RunResponse:
    """解析并执行定义，返回执行结果。"""
    options = RunOptions(
        provider=payload.provider,
        timeout_seconds=payload.timeout_seconds,
        wait=payload.wait,
        stop_on_error=payload.stop_on_error,
    )
    logger.info("run requested", extra={"event": "api.run.requested", "op": name})
    try:
        result = await executor.run(name, payload.inputs, options)
    except DispatchError as exc:
        logger.warning(
            "run failed",
            extra={"event": "api.run.failed", "op": name, "error_type": type(exc).__name__, "error": str(exc)},
        )
        raise _to_http_error(exc) from exc
    return RunResponse.from_result(result)


@router.get("/jobs", response_model=list[JobResponse])
def list_jobs(job_runner: JobRunner = Depends(_job_runner)) -> list[JobResponse]:
    return [JobResponse.from_job(job) for job in job_runner.list()]


@router.post("/jobs/clear-completed", response_model=ClearCompletedResponse)
def clear_completed_jobs(job_runner: JobRunner = Depends(_job_runner)) -> ClearCompletedResponse:
    """移除所有终态作业。"""
    return ClearCompletedResponse(removed=job_runner.clear_completed())


@router.get("/jobs/{job_id}", response_model=JobResponse)
def get_job(job_id: str, job_runner: JobRunner = Depends(_job_runner)) -> JobResponse:
    job = job_runner.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=str(JobNotFoundError(job_id)))
    return JobResponse.from_job(job)


@router.post("/jobs/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(job_id: str, executor: Executor = Depends(_executor)) -> JobResponse:
    """尽力取消作业；本地记录总会标记为 cancelled。"""
    try:
        job = await executor.cancel_job(job_id)
    except DispatchError as exc:
        raise _to_http_error(exc) from exc
    return JobResponse.from_job(job)

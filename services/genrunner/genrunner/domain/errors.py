"""调度异常体系：解析、校验、路由、供应商与流水线步骤错误。"""

from __future__ import annotations

from typing import Any


class DispatchError(Exception):
    """调度层异常基类。"""


class DefinitionError(DispatchError, ValueError):
    """定义结构非法，在构造或注册阶段抛出。"""


class ResolutionError(DispatchError):
    """名称无法解析为任何定义，附带近似候选。"""

    def __init__(self, name: str, suggestions: list[str] | None = None) -> None:
        self.name = name
        self.suggestions = list(suggestions or [])
        message = f'Definition not found: "{name}".'
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions[:3])}?"
        super().__init__(message)


class ValidationError(DispatchError):
    """输入不满足定义的 schema 约束。"""

    def __init__(self, name: str, errors: list[dict[str, Any]]) -> None:
        self.name = name
        self.errors = errors
        details = ", ".join(str(item.get("message")) for item in errors)
        super().__init__(f"Validation failed for {name}: {details}")


class RoutingError(DispatchError):
    """动作存在路由但没有任何路由条件成立。"""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"No valid route found for action: {action}")


class ProviderError(DispatchError):
    """供应商调用失败或上报 failed 状态。"""

    def __init__(self, message: str, *, provider: str | None = None, job_id: str | None = None) -> None:
        self.provider = provider
        self.job_id = job_id
        super().__init__(message)


class JobCancelledError(ProviderError):
    """远端作业被取消。"""


class JobTimeoutError(ProviderError, TimeoutError):
    """轮询超出预算；远端作业可能仍在运行。"""

    def __init__(self, job_id: str, timeout_seconds: float, *, provider: str | None = None) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Job {job_id} timed out after {timeout_seconds:g}s",
            provider=provider,
            job_id=job_id,
        )


class JobNotFoundError(DispatchError, KeyError):
    """作业 ID 不在本进程的作业表中。"""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"job not found: {job_id}")

    def __str__(self) -> str:
        return str(self.args[0])


class PipelineStepError(DispatchError):
    """包装流水线中某一步骤的失败，消息沿用原始异常。"""

    def __init__(self, step: str, cause: BaseException) -> None:
        self.step = step
        self.cause = cause
        super().__init__(str(cause))

"""领域数据结构定义：定义、路由、步骤、作业与执行结果等核心值对象。"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

from pydantic import BaseModel

from genrunner.domain.conditions import FieldCondition, parse_when
from genrunner.domain.enums import DefinitionKind, JobStatus
from genrunner.domain.errors import DefinitionError

Inputs = dict[str, Any]
Transform = Callable[[Inputs], Inputs]
LocalExecute = Callable[[Inputs], Any | Awaitable[Any]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class DefinitionSchema:
    """输入输出契约；校验细节交给 pydantic 模型。"""
    input: type[BaseModel] | None = None
    output: type[BaseModel] | None = None
    input_type: str | None = None
    output_type: str | None = None

    def input_type_label(self) -> str:
        return self.input_type or ""

    def output_type_label(self) -> str:
        if self.output_type:
            return self.output_type
        if self.output is None:
            return ""
        return str(self.output.model_json_schema().get("type", ""))


@dataclass(slots=True, kw_only=True)
class Definition:
    """可调度工作单元的公共字段。"""
    kind: ClassVar[DefinitionKind]
    name: str
    description: str = ""
    schema: DefinitionSchema = field(default_factory=DefinitionSchema)

    @property
    def qualified_name(self) -> str:
        return f"{self.kind.value}/{self.name}"


@dataclass(slots=True, kw_only=True)
class ModelDefinition(Definition):
    """单次生成调用，每次调用落到一个供应商。"""
    kind: ClassVar[DefinitionKind] = DefinitionKind.model
    providers: list[str] = field(default_factory=list)
    default_provider: str
    provider_models: dict[str, str] = field(default_factory=dict)

    def provider_model_id(self, provider: str) -> str:
        return self.provider_models.get(provider, self.name)


@dataclass(slots=True)
class Route:
    """动作的条件跳转目标；when 在构造时编译。"""
    target: str
    when: Mapping[str, Any] | None = None
    priority: int = 0
    transform: Transform | None = None
    conditions: tuple[FieldCondition, ...] = field(init=False, default=())

    def __post_init__(self) -> None:
        if not self.target:
            raise DefinitionError("route target is required")
        self.conditions = parse_when(self.when)


@dataclass(slots=True, kw_only=True)
class ActionDefinition(Definition):
    """本地执行或按条件路由到其他定义的动作。"""
    kind: ClassVar[DefinitionKind] = DefinitionKind.action
    routes: list[Route] = field(default_factory=list)
    execute: LocalExecute | None = None


@dataclass(slots=True)
class Step:
    """技能中的一个步骤；inputs 可包含 $ 引用表达式。"""
    name: str
    run: str
    inputs: dict[str, Any] = field(default_factory=dict)
    when: Mapping[str, Any] | None = None
    conditions: tuple[FieldCondition, ...] = field(init=False, default=())

    def __post_init__(self) -> None:
        if not self.name or not self.run:
            raise DefinitionError("step requires both name and run")
        self.conditions = parse_when(self.when)


@dataclass(slots=True, kw_only=True)
class SkillDefinition(Definition):
    """按声明顺序串行执行的多步骤工作流。"""
    kind: ClassVar[DefinitionKind] = DefinitionKind.skill
    steps: list[Step] = field(default_factory=list)

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for step in self.steps:
            if step.name in seen:
                raise DefinitionError(f"skill '{self.name}' has duplicate step name: {step.name}")
            seen.add(step.name)


AnyDefinition = ModelDefinition | ActionDefinition | SkillDefinition


@dataclass(slots=True)
class SearchFilters:
    """注册中心检索过滤条件。"""
    kind: DefinitionKind | None = None
    input_type: str | None = None
    output_type: str | None = None
    provider: str | None = None


@dataclass(slots=True)
class JobStatusUpdate:
    """供应商 get_status 返回的状态快照。"""
    status: JobStatus
    progress: float | None = None
    logs: list[str] | None = None
    output: Any = None
    error: str | None = None

    @classmethod
    def from_payload(cls, payload: JobStatusUpdate | Mapping[str, Any]) -> JobStatusUpdate:
        if isinstance(payload, JobStatusUpdate):
            return payload
        logs = payload.get("logs")
        return cls(
            status=JobStatus(payload["status"]),
            progress=payload.get("progress"),
            logs=list(logs) if logs is not None else None,
            output=payload.get("output"),
            error=payload.get("error"),
        )


@dataclass(slots=True)
class Job:
    """一次供应商调用的运行时记录，归 JobRunner 所有。"""
    id: str
    status: JobStatus
    provider: str
    model: str
    inputs: Inputs
    output: Any = None
    error: str | None = None
    progress: float | None = None
    logs: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    def set_status(self, status: JobStatus) -> None:
        self.status = status
        self.updated_at = utcnow()
        if status.is_terminal:
            self.completed_at = self.updated_at


ProgressCallback = Callable[[float, list[str] | None], None]
StatusCallback = Callable[[JobStatus], None]


@dataclass(slots=True)
class RunOptions:
    """单次调度的可选参数；同一份选项会透传给递归调用与流水线步骤。"""
    provider: str | None = None
    timeout_seconds: float | None = None
    wait: bool = True
    output_dir: str | None = None
    stop_on_error: bool = True
    on_progress: ProgressCallback | None = None
    on_status_change: StatusCallback | None = None
    on_step_start: Callable[[Step, PipelineContext], None] | None = None
    on_step_complete: Callable[[Step, ExecutionResult, PipelineContext], None] | None = None


@dataclass(slots=True)
class ExecutionResult:
    """调度结果。"""
    output: Any
    duration_ms: int
    provider: str
    model: str
    job_id: str | None = None
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class PipelineContext:
    """流水线累积上下文：原始输入与已完成步骤的输出。"""
    inputs: Inputs
    results: dict[str, Any] = field(default_factory=dict)
    step_index: int = 0
    total_steps: int = 0

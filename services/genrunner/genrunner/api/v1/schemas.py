"""API 请求与响应数据模型，约束定义目录、调度与作业接口的结构。"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from genrunner.domain.models import (
    ActionDefinition,
    AnyDefinition,
    ExecutionResult,
    Job,
    ModelDefinition,
    SkillDefinition,
)


class DefinitionSummary(BaseModel):
    """定义摘要响应模型。"""
    name: str
    kind: str
    qualified_name: str
    description: str
    input_type: str
    output_type: str
    providers: list[str] = Field(default_factory=list)
    default_provider: str | None = None
    routes: list[str] = Field(default_factory=list)
    steps: list[str] = Field(default_factory=list)
    input_schema: dict[str, Any] | None = None

    @classmethod
    def from_definition(cls, definition: AnyDefinition) -> DefinitionSummary:
        input_model = definition.schema.input
        summary = cls(
            name=definition.name,
            kind=definition.kind.value,
            qualified_name=definition.qualified_name,
            description=definition.description,
            input_type=definition.schema.input_type_label(),
            output_type=definition.schema.output_type_label(),
            input_schema=input_model.model_json_schema() if input_model is not None else None,
        )
        if isinstance(definition, ModelDefinition):
            summary.providers = list(definition.providers)
            summary.default_provider = definition.default_provider
        elif isinstance(definition, ActionDefinition):
            summary.routes = [route.target for route in definition.routes]
        elif isinstance(definition, SkillDefinition):
            summary.steps = [step.name for step in definition.steps]
        return summary


class ResolveResponse(BaseModel):
    """名称解析接口响应模型。"""
    query: str
    match_kind: str
    definition: DefinitionSummary
    suggestions: list[str]


class SuggestResponse(BaseModel):
    prefix: str
    names: list[str]


class ProviderResponse(BaseModel):
    """供应商能力响应模型。"""
    name: str
    supports_cancel: bool
    supports_upload: bool


class StatsResponse(BaseModel):
    models: int
    actions: int
    skills: int
    providers: int


class RunRequest(BaseModel):
    """调度请求体。"""
    inputs: dict[str, Any] = Field(default_factory=dict)
    provider: str | None = None
    timeout_seconds: float | None = Field(default=None, gt=0)
    wait: bool = True
    stop_on_error: bool = True


class RunResponse(BaseModel):
    """调度结果响应模型。"""
    output: Any
    duration_ms: int
    provider: str
    model: str
    job_id: str | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_result(cls, result: ExecutionResult) -> RunResponse:
        return cls(**result.to_dict())


class JobResponse(BaseModel):
    """作业详情响应模型。"""
    job_id: str
    status: str
    provider: str
    model: str
    inputs: dict[str, Any]
    output: Any = None
    error: str | None = None
    progress: float | None = None
    logs: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_job(cls, job: Job) -> JobResponse:
        return cls(
            job_id=job.id,
            status=job.status.value,
            provider=job.provider,
            model=job.model,
            inputs=job.inputs,
            output=job.output,
            error=job.error,
            progress=job.progress,
            logs=list(job.logs),
            created_at=job.created_at,
            updated_at=job.updated_at,
            completed_at=job.completed_at,
        )


class ClearCompletedResponse(BaseModel):
    removed: int

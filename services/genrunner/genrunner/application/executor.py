"""调度执行器：解析名称、校验输入并按定义类型分发到作业或流水线。"""

from __future__ import annotations

import logging
import time
from uuid import uuid4

from genrunner.application.job_runner import JobConfig, JobRunner
from genrunner.application.pipeline import PipelineRunner
from genrunner.domain.conditions import conditions_hold, field_lookup
from genrunner.domain.errors import JobNotFoundError, ProviderError, ResolutionError, RoutingError
from genrunner.domain.models import (
    ActionDefinition,
    ExecutionResult,
    Inputs,
    Job,
    ModelDefinition,
    Route,
    RunOptions,
    SkillDefinition,
)
from genrunner.domain.registry import Registry
from genrunner.domain.resolver import Resolver
from genrunner.domain.validation import validate_inputs
from genrunner.infra.logging.context import bind_log_context, get_log_context
from genrunner.infra.providers.base import maybe_await

logger = logging.getLogger(__name__)


def select_route(action: ActionDefinition, inputs: Inputs) -> Route | None:
    """返回条件成立且优先级最高的路由；同优先级保持声明顺序。"""
    lookup = field_lookup(inputs)
    eligible = [route for route in action.routes if conditions_hold(route.conditions, lookup)]
    eligible.sort(key=lambda route: -route.priority)
    return eligible[0] if eligible else None


class Executor:
    def __init__(
        self,
        *,
        registry: Registry,
        resolver: Resolver,
        job_runner: JobRunner,
        pipeline_runner: PipelineRunner,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._job_runner = job_runner
        self._pipeline_runner = pipeline_runner

    async def run(self, name: str, inputs: Inputs | None = None, options: RunOptions | None = None) -> ExecutionResult:
        """调度入口；顶层调用生成 run_id，嵌套的路由与技能步骤沿用同一个。"""
        if get_log_context()["run_id"] is not None:
            return await self._dispatch(name, inputs, options)
        with bind_log_context(run_id=uuid4().hex):
            return await self._dispatch(name, inputs, options)

    async def _dispatch(self, name: str, inputs: Inputs | None, options: RunOptions | None) -> ExecutionResult:
        options = options or RunOptions()
        definition = self._resolver.resolve(name, required=True).definition
        if definition is None:
            raise ResolutionError(name)
        prepared = validate_inputs(definition, dict(inputs or {}))

        if isinstance(definition, ModelDefinition):
            return await self.run_model(definition, prepared, options)
        if isinstance(definition, ActionDefinition):
            return await self.run_action(definition, prepared, options)
        if isinstance(definition, SkillDefinition):
            return await self.run_skill(definition, prepared, options)
        raise TypeError(f"unsupported definition type: {type(definition).__name__}")

    async def run_model(self, model: ModelDefinition, inputs: Inputs, options: RunOptions) -> ExecutionResult:
        provider_name = options.provider or model.default_provider
        provider = self._registry.get_provider(provider_name)
        if provider is None:
            available = ", ".join(item.name for item in self._registry.list_providers())
            raise ProviderError(f"Provider not found: {provider_name}. Available: {available}", provider=provider_name)

        logger.info(
            "dispatching model",
            extra={"event": "executor.model.dispatched", "op": model.name, "external_service": provider_name},
        )
        return await self._job_runner.run(
            JobConfig(
                provider=provider,
                model=model.provider_model_id(provider_name),
                inputs=inputs,
                options=options,
            )
        )

    async def run_action(self, action: ActionDefinition, inputs: Inputs, options: RunOptions) -> ExecutionResult:
        if action.execute is not None:
            started = time.perf_counter()
            output = await maybe_await(action.execute(inputs))
            duration_ms = int((time.perf_counter() - started) * 1000)
            logger.info(
                "action executed locally",
                extra={"event": "executor.action.executed", "op": action.name, "duration_ms": duration_ms},
            )
            return ExecutionResult(output=output, duration_ms=duration_ms, provider="local", model=action.name)

        route = select_route(action, inputs)
        if route is None:
            raise RoutingError(action.name)

        logger.info(
            "routing action",
            extra={"event": "executor.action.routed", "op": action.name, "payload_preview": {"target": route.target}},
        )
        routed_inputs = route.transform(dict(inputs)) if route.transform is not None else inputs
        return await self.run(route.target, routed_inputs, options)

    async def run_skill(self, skill: SkillDefinition, inputs: Inputs, options: RunOptions) -> ExecutionResult:
        return await self._pipeline_runner.run(
            skill,
            inputs,
            lambda name, step_inputs, step_options: self.run(name, step_inputs, step_options),
            options,
        )

    async def cancel_job(self, job_id: str) -> Job:
        """按作业记录上的供应商名称取消作业。"""
        job = self._job_runner.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return await self._job_runner.cancel(job_id, self._registry.get_provider(job.provider))

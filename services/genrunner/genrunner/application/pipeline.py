"""技能流水线：按声明顺序串行执行步骤，解析 $ 引用并累积步骤结果。"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from genrunner.domain.conditions import MISSING, conditions_hold
from genrunner.domain.errors import PipelineStepError
from genrunner.domain.models import ExecutionResult, Inputs, PipelineContext, RunOptions, SkillDefinition, Step
from genrunner.infra.logging.context import bind_log_context

logger = logging.getLogger(__name__)

StepExecutor = Callable[[str, Inputs, RunOptions], Awaitable[ExecutionResult]]


def _descend(current: Any, segment: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(segment, MISSING)
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        try:
            return current[int(segment)]
        except (ValueError, IndexError):
            return MISSING
    return MISSING


def _lookup(expression: str, context: PipelineContext) -> Any:
    """沿 . 分隔路径取值；任一段缺失或不可下钻时返回 MISSING。"""
    head, *rest = expression[1:].split(".")
    if head == "inputs":
        current: Any = context.inputs
    elif head == "results":
        current = context.results
    elif head in context.results:
        current = context.results[head]
    else:
        return MISSING
    for segment in rest:
        current = _descend(current, segment)
        if current is MISSING:
            return MISSING
    return current


def _resolve(value: Any, context: PipelineContext) -> Any:
    if not isinstance(value, str) or not value.startswith("$"):
        return value
    if value.startswith("$$"):
        return value[1:]
    return _lookup(value, context)


def resolve_reference(value: Any, context: PipelineContext) -> Any:
    """解析单个值：$inputs.x / $results.step.field / $step.field；$$ 开头视为转义字面量。

    无法解析的引用返回 None。
    """
    resolved = _resolve(value, context)
    return None if resolved is MISSING else resolved


def resolve_step_inputs(inputs: Mapping[str, Any], context: PipelineContext) -> Inputs:
    """解析步骤输入；无法解析的条目被省略，交给目标定义的默认值。"""
    resolved: Inputs = {}
    for key, value in inputs.items():
        item = _resolve(value, context)
        if item is not MISSING:
            resolved[key] = item
    return resolved


def step_condition_holds(step: Step, context: PipelineContext) -> bool:
    return conditions_hold(step.conditions, lambda key: _resolve(key, context))


class PipelineRunner:
    """技能执行器；单步调度通过调用方传入的 step_executor 完成。"""

    async def run(
        self,
        skill: SkillDefinition,
        inputs: Inputs,
        step_executor: StepExecutor,
        options: RunOptions | None = None,
    ) -> ExecutionResult:
        options = options or RunOptions()
        started = time.perf_counter()
        context = PipelineContext(inputs=dict(inputs), total_steps=len(skill.steps))
        last_result: ExecutionResult | None = None

        logger.info(
            "pipeline started",
            extra={"event": "pipeline.started", "op": skill.name, "payload_preview": [step.name for step in skill.steps]},
        )

        for index, step in enumerate(skill.steps):
            context.step_index = index
            with bind_log_context(step=step.name):
                if step.conditions and not step_condition_holds(step, context):
                    logger.info(
                        "pipeline step skipped",
                        extra={"event": "pipeline.step.skipped", "op": step.run},
                    )
                    continue

                step_inputs = resolve_step_inputs(step.inputs, context)
                if options.on_step_start is not None:
                    options.on_step_start(step, context)

                step_started = time.perf_counter()
                try:
                    result = await step_executor(step.run, step_inputs, options)
                except Exception as exc:
                    logger.error(
                        "pipeline step failed",
                        extra={
                            "event": "pipeline.step.failed",
                            "op": step.run,
                            "duration_ms": round((time.perf_counter() - step_started) * 1000, 2),
                            "error_type": type(exc).__name__,
                            "error": str(exc),
                        },
                    )
                    if options.stop_on_error:
                        raise PipelineStepError(step.name, exc) from exc
                    context.results[step.name] = {"error": str(exc)}
                    continue

                context.results[step.name] = result.output
                last_result = result
                if options.on_step_complete is not None:
                    options.on_step_complete(step, result, context)
                logger.info(
                    "pipeline step completed",
                    extra={
                        "event": "pipeline.step.completed",
                        "op": step.run,
                        "duration_ms": round((time.perf_counter() - step_started) * 1000, 2),
                    },
                )

        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "pipeline completed",
            extra={"event": "pipeline.completed", "op": skill.name, "duration_ms": duration_ms},
        )
        # 没有成功步骤或最后成功步骤的输出为 None 时，output 回退为完整的结果表。
        output = last_result.output if last_result is not None else None
        provider = last_result.provider if last_result is not None else None
        return ExecutionResult(
            output=output if output is not None else context.results,
            duration_ms=duration_ms,
            provider=provider or "pipeline",
            model=skill.name,
            metadata={"step_results": context.results},
        )

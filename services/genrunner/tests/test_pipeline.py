"""流水线测试：引用解析、条件跳过、错误传播与 stop_on_error 行为。"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from genrunner.application.pipeline import PipelineRunner, resolve_reference, resolve_step_inputs
from genrunner.domain.errors import PipelineStepError
from genrunner.domain.models import ExecutionResult, PipelineContext, RunOptions, SkillDefinition, Step


class RecordingExecutor:
    """记录每次调用，并按目标名称返回预设输出或抛出异常。"""

    def __init__(self, outputs: dict[str, Any], failures: dict[str, Exception] | None = None) -> None:
        self.outputs = outputs
        self.failures = failures or {}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def __call__(self, name: str, inputs: dict[str, Any], options: RunOptions) -> ExecutionResult:
        self.calls.append((name, inputs))
        if name in self.failures:
            raise self.failures[name]
        return ExecutionResult(output=self.outputs.get(name), duration_ms=1, provider="mock", model=name)


def _context() -> PipelineContext:
    return PipelineContext(
        inputs={"prompt": "a cat", "tags": ["x", "y"]},
        results={"A": {"output": "hello", "images": [{"url": "u1"}]}, "B": None},
    )


def test_reference_resolution_paths() -> None:
    context = _context()
    assert resolve_reference("$inputs.prompt", context) == "a cat"
    assert resolve_reference("$inputs.tags.1", context) == "y"
    assert resolve_reference("$results.A.output", context) == "hello"
    assert resolve_reference("$A.images.0.url", context) == "u1"
    assert resolve_reference("$inputs", context) == context.inputs
    assert resolve_reference("plain", context) == "plain"
    assert resolve_reference(42, context) == 42


def test_unresolvable_references_are_none() -> None:
    context = _context()
    assert resolve_reference("$results.missingStep.output", context) is None
    assert resolve_reference("$results.B.output", context) is None
    assert resolve_reference("$inputs.prompt.length", context) is None
    assert resolve_reference("$inputs.tags.9", context) is None
    assert resolve_reference("$unknownStep", context) is None


def test_double_dollar_escapes_literal() -> None:
    context = _context()
    assert resolve_reference("$$inputs.prompt", context) == "$inputs.prompt"
    assert resolve_reference("$$5.00", context) == "$5.00"


def test_step_inputs_omit_unresolvable_entries() -> None:
    resolved = resolve_step_inputs(
        {"prompt": "$inputs.prompt", "image": "$results.nope.url", "price": "$$9", "n": 2},
        _context(),
    )
    assert resolved == {"prompt": "a cat", "price": "$9", "n": 2}


def test_results_flow_between_steps() -> None:
    skill = SkillDefinition(
        name="chain",
        steps=[
            Step(name="A", run="gen"),
            Step(name="B", run="use", inputs={"val": "$results.A.output"}),
        ],
    )
    executor = RecordingExecutor({"gen": {"output": "hello"}, "use": "done"})

    result = asyncio.run(PipelineRunner().run(skill, {}, executor))

    assert executor.calls[1] == ("use", {"val": "hello"})
    assert result.output == "done"
    assert result.provider == "mock"
    assert result.model == "chain"
    assert result.metadata == {"step_results": {"A": {"output": "hello"}, "B": "done"}}


def test_when_condition_skips_step() -> None:
    skill = SkillDefinition(
        name="conditional",
        steps=[
            Step(name="A", run="gen"),
            Step(name="upscale", run="up", when={"$inputs.hd": True}),
            Step(name="big", run="big", when={"$inputs.count": {"$gte": 3}}),
        ],
    )
    executor = RecordingExecutor({"gen": "img", "up": "hd-img", "big": "many"})

    result = asyncio.run(PipelineRunner().run(skill, {"count": 5}, executor))

    assert [name for name, _ in executor.calls] == ["gen", "big"]
    assert "upscale" not in result.metadata["step_results"]
    assert result.output == "many"


def test_stop_on_error_default_aborts_pipeline() -> None:
    skill = SkillDefinition(
        name="fragile",
        steps=[Step(name="A", run="a"), Step(name="B", run="b"), Step(name="C", run="c")],
    )
    executor = RecordingExecutor({"a": 1, "c": 3}, failures={"b": RuntimeError("upstream exploded")})

    with pytest.raises(PipelineStepError, match="upstream exploded") as exc_info:
        asyncio.run(PipelineRunner().run(skill, {}, executor))

    assert exc_info.value.step == "B"
    assert isinstance(exc_info.value.cause, RuntimeError)
    assert [name for name, _ in executor.calls] == ["a", "b"]


def test_continue_on_error_records_failure() -> None:
    skill = SkillDefinition(
        name="tolerant",
        steps=[Step(name="A", run="a"), Step(name="B", run="b"), Step(name="C", run="c")],
    )
    executor = RecordingExecutor({"a": 1, "c": 3}, failures={"b": RuntimeError("upstream exploded")})

    result = asyncio.run(PipelineRunner().run(skill, {}, executor, RunOptions(stop_on_error=False)))

    assert result.metadata["step_results"] == {"A": 1, "B": {"error": "upstream exploded"}, "C": 3}
    assert result.output == 3


def test_no_successful_step_falls_back_to_results_map() -> None:
    skill = SkillDefinition(name="broken", steps=[Step(name="A", run="a")])
    executor = RecordingExecutor({}, failures={"a": ValueError("bad")})

    result = asyncio.run(PipelineRunner().run(skill, {}, executor, RunOptions(stop_on_error=False)))

    assert result.output == {"A": {"error": "bad"}}
    assert result.provider == "pipeline"


def test_last_step_returning_none_falls_back_to_results_map() -> None:
    skill = SkillDefinition(name="quiet-tail", steps=[Step(name="A", run="a"), Step(name="B", run="b")])
    executor = RecordingExecutor({"a": {"v": 1}, "b": None})

    result = asyncio.run(PipelineRunner().run(skill, {}, executor))

    assert result.output == {"A": {"v": 1}, "B": None}
    assert result.provider == "mock"


def test_step_callbacks_receive_context() -> None:
    skill = SkillDefinition(name="cb", steps=[Step(name="A", run="a"), Step(name="B", run="b")])
    started: list[tuple[str, int, int]] = []
    completed: list[tuple[str, Any]] = []
    options = RunOptions(
        on_step_start=lambda step, ctx: started.append((step.name, ctx.step_index, ctx.total_steps)),
        on_step_complete=lambda step, result, ctx: completed.append((step.name, result.output)),
    )

    asyncio.run(PipelineRunner().run(skill, {}, RecordingExecutor({"a": 1, "b": 2}), options))

    assert started == [("A", 0, 2), ("B", 1, 2)]
    assert completed == [("A", 1), ("B", 2)]

"""注册中心测试：覆盖按类型存取、前缀解析、检索过滤与统计。"""

from __future__ import annotations

from pydantic import BaseModel

from genrunner.catalog.registration import builtin_definitions, register_catalog
from genrunner.domain.enums import DefinitionKind
from genrunner.domain.models import (
    ActionDefinition,
    DefinitionSchema,
    ModelDefinition,
    Route,
    SearchFilters,
    SkillDefinition,
    Step,
)
from genrunner.domain.registry import Registry
from genrunner.infra.providers.base import CallableProvider


class _Caption(BaseModel):
    text: str


def _model(name: str, **kwargs) -> ModelDefinition:
    kwargs.setdefault("default_provider", "mock")
    kwargs.setdefault("providers", ["mock"])
    return ModelDefinition(name=name, **kwargs)


def test_register_and_resolve_by_kind_order() -> None:
    """同名定义无前缀时按 model → action → skill 顺序命中。"""
    registry = Registry()
    model = _model("merge")
    action = ActionDefinition(name="merge", routes=[Route(target="other")])
    registry.register(action)
    registry.register(model)

    assert registry.resolve("merge") is model
    assert registry.resolve("action/merge") is action
    assert registry.resolve("skill/merge") is None
    assert registry.has("merge")
    assert not registry.has("missing")


def test_register_same_name_last_write_wins() -> None:
    registry = Registry()
    first = _model("flux", description="old")
    second = _model("flux", description="new")
    registry.register(first)
    registry.register(second)

    assert registry.get_model("flux") is second
    assert len(registry.list(DefinitionKind.model)) == 1


def test_unknown_prefix_falls_back_to_full_name_lookup() -> None:
    """未知前缀不视为类型限定，按完整名称查找。"""
    registry = Registry()
    model = _model("fal/flux")
    registry.register(model)
    assert registry.resolve("fal/flux") is model


def test_unregister_removes_first_match() -> None:
    registry = Registry()
    registry.register(_model("trim"))
    registry.register(SkillDefinition(name="trim", steps=[Step(name="a", run="x")]))

    assert registry.unregister("trim") is True
    assert registry.get_model("trim") is None
    assert registry.get_skill("trim") is not None
    assert registry.unregister("nothing") is False


def test_search_by_text_and_filters() -> None:
    """检索匹配名称/描述子串，或输入输出类型标签与供应商。"""
    registry = Registry()
    registry.register(_model("whisper", description="Speech to text", schema=DefinitionSchema(input_type="audio")))
    registry.register(_model("flux", providers=["fal"], default_provider="fal"))
    registry.register(
        ActionDefinition(
            name="captions",
            schema=DefinitionSchema(output=_Caption),
            routes=[Route(target="whisper")],
        )
    )

    assert [item.name for item in registry.search("SPEECH")] == ["whisper"]
    assert [item.name for item in registry.search("zzz", SearchFilters(input_type="Audio"))] == ["whisper"]
    assert [item.name for item in registry.search("zzz", SearchFilters(provider="fal"))] == ["flux"]
    # 未声明 output_type 时回退到输出模型 JSON Schema 的 type。
    assert [item.name for item in registry.search("zzz", SearchFilters(output_type="object"))] == ["captions"]
    assert registry.search("flux", SearchFilters(kind=DefinitionKind.action)) == []


def test_providers_and_stats() -> None:
    registry = Registry()
    provider = CallableProvider("local", lambda model_id, inputs: inputs)
    registry.register_provider(provider)
    register_catalog(registry)

    assert registry.get_provider("local") is provider
    assert registry.list_providers() == [provider]
    assert registry.stats() == {"models": 3, "actions": 3, "skills": 1, "providers": 1}
    assert len(registry.list()) == len(builtin_definitions())

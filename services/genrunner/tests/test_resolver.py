"""名称解析测试：精确、别名、命名空间、模糊匹配与候选排序。"""

from __future__ import annotations

import pytest

from genrunner.catalog.registration import register_catalog
from genrunner.domain.enums import DefinitionKind, MatchKind
from genrunner.domain.errors import ResolutionError
from genrunner.domain.models import ActionDefinition, ModelDefinition, Route
from genrunner.domain.registry import Registry
from genrunner.domain.resolver import Resolver, levenshtein_distance, similarity


def _registry() -> Registry:
    registry = Registry()
    register_catalog(registry)
    return registry


def test_every_registered_definition_resolves_exactly() -> None:
    registry = _registry()
    resolver = Resolver(registry)
    for definition in registry.list():
        result = resolver.resolve(definition.name)
        assert result.definition is definition
        assert result.match_kind == MatchKind.exact


def test_alias_resolves_case_insensitively() -> None:
    resolver = Resolver(_registry())
    result = resolver.resolve("I2V", fuzzy=False)
    assert result.definition is not None
    assert result.definition.name == "image-to-video"
    assert result.match_kind == MatchKind.alias


def test_alias_without_registered_target_is_not_a_match() -> None:
    resolver = Resolver(Registry())
    result = resolver.resolve("i2v")
    assert result.definition is None
    assert result.match_kind is None


def test_prefer_kind_picks_namespaced_definition_on_collision() -> None:
    """同名定义跨类型存在时，prefer_kind 指定的类型优先。"""
    registry = Registry()
    model = ModelDefinition(name="edit", default_provider="mock")
    action = ActionDefinition(name="edit", routes=[Route(target="edit")])
    registry.register(model)
    registry.register(action)
    resolver = Resolver(registry, aliases={})

    preferred = resolver.resolve("edit", prefer_kind=DefinitionKind.action)
    assert preferred.definition is action
    assert preferred.match_kind == MatchKind.namespace

    same_kind = resolver.resolve("edit", prefer_kind=DefinitionKind.model)
    assert same_kind.definition is model
    assert same_kind.match_kind == MatchKind.exact


def test_fuzzy_disabled_by_default() -> None:
    resolver = Resolver(_registry())
    result = resolver.resolve("imagetovide")
    assert result.definition is None
    assert "image-to-video" in result.suggestions


def test_fuzzy_opt_in_returns_best_candidate() -> None:
    resolver = Resolver(_registry())
    result = resolver.resolve("imag-to-video", fuzzy=True)
    assert result.definition is not None
    assert result.definition.name == "image-to-video"
    assert result.match_kind == MatchKind.fuzzy


def test_required_raises_with_at_most_three_suggestions() -> None:
    resolver = Resolver(_registry())
    with pytest.raises(ResolutionError) as exc_info:
        resolver.resolve("vide", required=True)
    assert exc_info.value.name == "vide"
    assert 0 < len(exc_info.value.suggestions) <= 3
    assert exc_info.value.suggestions[0] == "video"
    assert "Did you mean: video" in str(exc_info.value)


def test_equal_scores_are_ordered_by_name() -> None:
    """同分候选按名称升序，保证结果确定。"""
    registry = Registry()
    for name in ("zoom-b", "zoom-a", "zoom-c"):
        registry.register(ActionDefinition(name=name, routes=[Route(target="x")]))
    resolver = Resolver(registry, aliases={})
    assert resolver.find_similar("zoom") == ["zoom-a", "zoom-b", "zoom-c"]


def test_find_similar_respects_threshold_and_limit() -> None:
    resolver = Resolver(_registry(), suggestion_limit=2)
    assert len(resolver.find_similar("video")) <= 2
    assert resolver.find_similar("qqqqqqqqqqqqqqqqq") == []


def test_suggest_prefix_keeps_registry_order() -> None:
    resolver = Resolver(_registry())
    assert resolver.suggest("IMAGE") == ["image-to-video"]
    assert resolver.suggest("") == [item.name for item in _registry().list()][:10]
    assert resolver.suggest("k", limit=1) == ["kling"]


def test_similarity_scoring() -> None:
    assert similarity("Flux", "flux") == 1.0
    assert similarity("flux", "flux-pro") == 0.9
    assert similarity("pro", "flux-pro") == 0.7
    assert similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("abc", "abc") == 0

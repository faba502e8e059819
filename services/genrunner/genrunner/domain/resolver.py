"""名称解析器：精确匹配、别名、命名空间与可选模糊匹配。"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from genrunner.domain.enums import DefinitionKind, MatchKind
from genrunner.domain.errors import ResolutionError
from genrunner.domain.models import AnyDefinition
from genrunner.domain.registry import Registry

logger = logging.getLogger(__name__)

ALIASES: dict[str, str] = {
    # video generation
    "i2v": "image-to-video",
    "t2v": "text-to-video",
    "img2vid": "image-to-video",
    "txt2vid": "text-to-video",
    # image generation
    "i2i": "image-to-image",
    "t2i": "text-to-image",
    "img2img": "image-to-image",
    "txt2img": "text-to-image",
    # voice / audio
    "tts": "text-to-speech",
    "stt": "speech-to-text",
    "voice": "text-to-speech",
    # video editing
    "concat": "merge",
    "join": "merge",
    "combine": "merge",
    "crop": "trim",
    "clip": "trim",
}


@dataclass(slots=True)
class ResolveResult:
    """解析结果；未命中时 definition 为 None 并附带候选名称。"""
    definition: AnyDefinition | None
    match_kind: MatchKind | None
    suggestions: list[str] = field(default_factory=list)


def levenshtein_distance(a: str, b: str) -> int:
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(a) + 1))
    for i, char_b in enumerate(b, start=1):
        current = [i] + [0] * len(a)
        for j, char_a in enumerate(a, start=1):
            if char_a == char_b:
                current[j] = previous[j - 1]
            else:
                current[j] = min(previous[j - 1], current[j - 1], previous[j]) + 1
        previous = current
    return previous[len(a)]


def similarity(a: str, b: str) -> float:
    """对称相似度：相等 1.0，前缀 0.9，包含 0.7，否则按编辑距离归一化。"""
    a, b = a.lower(), b.lower()
    if a == b:
        return 1.0
    if a.startswith(b) or b.startswith(a):
        return 0.9
    if a in b or b in a:
        return 0.7
    return 1 - levenshtein_distance(a, b) / max(len(a), len(b))


class Resolver:
    """基于注册中心的名称解析器。"""

    def __init__(
        self,
        registry: Registry,
        *,
        aliases: dict[str, str] | None = None,
        threshold: float = 0.3,
        suggestion_limit: int = 5,
    ) -> None:
        self._registry = registry
        self._aliases = ALIASES if aliases is None else aliases
        self._threshold = threshold
        self._suggestion_limit = suggestion_limit

    def resolve(
        self,
        name: str,
        *,
        required: bool = False,
        prefer_kind: DefinitionKind | None = None,
        fuzzy: bool = False,
    ) -> ResolveResult:
        """按 精确 > prefer_kind 命名空间 > 别名 > 模糊 的顺序解析；同名跨类型时 prefer_kind 覆盖精确命中。"""
        exact = self._registry.resolve(name)
        namespaced = None
        if prefer_kind is not None:
            namespaced = self._registry.resolve(f"{DefinitionKind(prefer_kind).value}/{name}")
        # 同名定义存在于多个类型时，prefer_kind 指定的类型优先。
        if exact is not None and (namespaced is None or namespaced is exact):
            return ResolveResult(exact, MatchKind.exact)
        if namespaced is not None:
            return ResolveResult(namespaced, MatchKind.namespace)

        alias_target = self._aliases.get(name.lower())
        if alias_target:
            aliased = self._registry.resolve(alias_target)
            if aliased is not None:
                return ResolveResult(aliased, MatchKind.alias)

        suggestions = self.find_similar(name)
        if fuzzy and suggestions:
            top = self._registry.resolve(suggestions[0])
            if top is not None:
                logger.debug(
                    "fuzzy match accepted",
                    extra={"event": "resolver.fuzzy.matched", "op": name, "payload_preview": suggestions[:3]},
                )
                return ResolveResult(top, MatchKind.fuzzy, suggestions)

        if required:
            raise ResolutionError(name, suggestions[:3])
        return ResolveResult(None, None, suggestions)

    def find_similar(self, query: str, limit: int | None = None) -> list[str]:
        """按相似度降序返回候选名称，同分按名称升序。"""
        limit = self._suggestion_limit if limit is None else limit
        scored = [(similarity(query, definition.name), definition.name) for definition in self._registry.list()]
        scored = [item for item in scored if item[0] > self._threshold]
        scored.sort(key=lambda item: (-item[0], item[1]))
        names: list[str] = []
        for _score, name in scored:
            if name not in names:
                names.append(name)
        return names[:limit]

    def suggest(self, partial: str, limit: int = 10) -> list[str]:
        """前缀补全，保持注册顺序。"""
        prefix = partial.lower()
        return [
            definition.name
            for definition in self._registry.list()
            if definition.name.lower().startswith(prefix)
        ][:limit]

"""定义注册中心：按类型管理模型、动作、技能与供应商的注册、查询和检索。"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from genrunner.domain.enums import DefinitionKind
from genrunner.domain.models import (
    ActionDefinition,
    AnyDefinition,
    ModelDefinition,
    SearchFilters,
    SkillDefinition,
)

if TYPE_CHECKING:
    from genrunner.infra.providers.base import Provider

logger = logging.getLogger(__name__)


class Registry:
    """定义与供应商的内存目录。

    注册应在调度开始前完成；运行期只读，不做并发控制。
    """

    def __init__(self) -> None:
        self._definitions: dict[DefinitionKind, dict[str, AnyDefinition]] = {kind: {} for kind in DefinitionKind}
        self._providers: dict[str, Provider] = {}

    def register(self, definition: AnyDefinition) -> None:
        """按类型与名称注册定义，同名覆盖。"""
        self._definitions[definition.kind][definition.name] = definition
        logger.debug(
            "definition registered",
            extra={"event": "registry.definition.registered", "op": definition.qualified_name},
        )

    def register_provider(self, provider: Provider) -> None:
        """按名称注册供应商。"""
        self._providers[provider.name] = provider
        logger.info(
            "provider registered",
            extra={"event": "registry.provider.registered", "external_service": provider.name},
        )

    def unregister(self, name: str) -> bool:
        """从首个包含该名称的类型表中移除定义。"""
        for kind in DefinitionKind:
            if self._definitions[kind].pop(name, None) is not None:
                return True
        return False

    def resolve(self, name: str) -> AnyDefinition | None:
        """解析名称；带 kind/ 前缀时只查对应类型，否则按 model → action → skill 顺序查找。"""
        prefix, sep, rest = name.partition("/")
        if sep:
            try:
                kind = DefinitionKind(prefix)
            except ValueError:
                kind = None
            if kind is not None:
                return self._definitions[kind].get(rest)
        for kind in DefinitionKind:
            found = self._definitions[kind].get(name)
            if found is not None:
                return found
        return None

    def has(self, name: str) -> bool:
        return self.resolve(name) is not None

    def get_provider(self, name: str) -> Provider | None:
        return self._providers.get(name)

    def get_model(self, name: str) -> ModelDefinition | None:
        return self._definitions[DefinitionKind.model].get(name)  # type: ignore[return-value]

    def get_action(self, name: str) -> ActionDefinition | None:
        return self._definitions[DefinitionKind.action].get(name)  # type: ignore[return-value]

    def get_skill(self, name: str) -> SkillDefinition | None:
        return self._definitions[DefinitionKind.skill].get(name)  # type: ignore[return-value]

    def list(self, kind: DefinitionKind | None = None) -> list[AnyDefinition]:
        """列出定义，可按类型过滤；顺序为类型顺序加注册顺序。"""
        kinds = [kind] if kind is not None else list(DefinitionKind)
        return [definition for item in kinds for definition in self._definitions[item].values()]

    def list_providers(self) -> list[Provider]:
        return list(self._providers.values())

    def search(self, query: str, filters: SearchFilters | None = None) -> list[AnyDefinition]:
        """按名称/描述子串检索，未命中时再按输入输出类型或供应商过滤条件匹配。"""
        filters = filters or SearchFilters()
        needle = query.lower()
        results: list[AnyDefinition] = []
        for definition in self.list(filters.kind):
            if needle in definition.name.lower() or needle in definition.description.lower():
                results.append(definition)
                continue
            if filters.input_type and filters.input_type.lower() in definition.schema.input_type_label().lower():
                results.append(definition)
                continue
            if filters.output_type and filters.output_type.lower() in definition.schema.output_type_label().lower():
                results.append(definition)
                continue
            if (
                filters.provider
                and isinstance(definition, ModelDefinition)
                and filters.provider in definition.providers
            ):
                results.append(definition)
        return results

    def stats(self) -> dict[str, int]:
        counts = {f"{kind.value}s": len(self._definitions[kind]) for kind in DefinitionKind}
        counts["providers"] = len(self._providers)
        return counts

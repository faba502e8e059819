"""定义目录接口：列出、检索、解析与补全定义名称，查询供应商与统计信息。"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from genrunner.api.v1.schemas import (
    DefinitionSummary,
    ProviderResponse,
    ResolveResponse,
    StatsResponse,
    SuggestResponse,
)
from genrunner.application.container import get_registry, get_resolver
from genrunner.domain.enums import DefinitionKind
from genrunner.domain.models import SearchFilters
from genrunner.domain.registry import Registry
from genrunner.domain.resolver import Resolver
from genrunner.infra.providers.base import supports_cancel, supports_upload

router = APIRouter()


def _registry() -> Registry:
    return get_registry()


def _resolver() -> Resolver:
    return get_resolver()


@router.get("/definitions", response_model=list[DefinitionSummary])
def list_definitions(
    kind: DefinitionKind | None = None,
    registry: Registry = Depends(_registry),
) -> list[DefinitionSummary]:
    """按可选类型过滤并返回定义列表。"""
    return [DefinitionSummary.from_definition(item) for item in registry.list(kind)]


@router.get("/definitions/search", response_model=list[DefinitionSummary])
def search_definitions(
    q: str = "",
    kind: DefinitionKind | None = None,
    input_type: str | None = None,
    output_type: str | None = None,
    provider: str | None = None,
    registry: Registry = Depends(_registry),
) -> list[DefinitionSummary]:
    filters = SearchFilters(kind=kind, input_type=input_type, output_type=output_type, provider=provider)
    return [DefinitionSummary.from_definition(item) for item in registry.search(q, filters)]


@router.get("/definitions/suggest", response_model=SuggestResponse)
def suggest_definitions(
    prefix: str,
    limit: int = 10,
    resolver: Resolver = Depends(_resolver),
) -> SuggestResponse:
    return SuggestResponse(prefix=prefix, names=resolver.suggest(prefix, limit=limit))


@router.get("/definitions/resolve/{name:path}", response_model=ResolveResponse)
def resolve_definition(
    name: str,
    prefer_kind: DefinitionKind | None = None,
    fuzzy: bool = False,
    resolver: Resolver = Depends(_resolver),
) -> ResolveResponse:
    """解析名称；未命中时返回 404 并附带候选名称。"""
    result = resolver.resolve(name, prefer_kind=prefer_kind, fuzzy=fuzzy)
    if result.definition is None or result.match_kind is None:
        raise HTTPException(
            status_code=404,
            detail={"message": f'Definition not found: "{name}"', "suggestions": result.suggestions},
        )
    return ResolveResponse(
        query=name,
        match_kind=result.match_kind.value,
        definition=DefinitionSummary.from_definition(result.definition),
        suggestions=result.suggestions,
    )


@router.get("/providers", response_model=list[ProviderResponse])
def list_providers(registry: Registry = Depends(_registry)) -> list[ProviderResponse]:
    return [
        ProviderResponse(
            name=provider.name,
            supports_cancel=supports_cancel(provider),
            supports_upload=supports_upload(provider),
        )
        for provider in registry.list_providers()
    ]


@router.get("/stats", response_model=StatsResponse)
def registry_stats(registry: Registry = Depends(_registry)) -> StatsResponse:
    return StatsResponse(**registry.stats())

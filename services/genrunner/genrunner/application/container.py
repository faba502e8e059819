"""依赖容器模块，负责单例化创建注册中心、解析器、作业运行器与执行器。"""

from __future__ import annotations

import logging
from functools import lru_cache

from genrunner.application.executor import Executor
from genrunner.application.job_runner import JobRunner
from genrunner.application.pipeline import PipelineRunner
from genrunner.catalog.registration import register_catalog
from genrunner.catalog.shared import FAL_PROVIDER
from genrunner.config import get_settings
from genrunner.domain.registry import Registry
from genrunner.domain.resolver import Resolver
from genrunner.infra.providers.http_queue import HttpQueueProvider

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_fal_provider() -> HttpQueueProvider:
    """获取 fal 队列供应商单例。"""
    settings = get_settings()
    return HttpQueueProvider(
        FAL_PROVIDER,
        settings.fal_base_url,
        api_key=settings.fal_api_key,
        upload_url=settings.fal_upload_url,
        timeout_seconds=settings.provider_request_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_registry() -> Registry:
    """获取注册中心单例；启动时完成全部注册，之后只读。"""
    settings = get_settings()
    registry = Registry()
    registry.register_provider(get_fal_provider())
    if settings.register_builtin_catalog:
        register_catalog(registry)
    return registry


@lru_cache(maxsize=1)
def get_resolver() -> Resolver:
    settings = get_settings()
    return Resolver(
        get_registry(),
        threshold=settings.fuzzy_threshold,
        suggestion_limit=settings.suggestion_limit,
    )


@lru_cache(maxsize=1)
def get_job_runner() -> JobRunner:
    return JobRunner.from_settings(get_settings())


@lru_cache(maxsize=1)
def get_pipeline_runner() -> PipelineRunner:
    return PipelineRunner()


@lru_cache(maxsize=1)
def get_executor() -> Executor:
    """获取调度执行器单例。"""
    return Executor(
        registry=get_registry(),
        resolver=get_resolver(),
        job_runner=get_job_runner(),
        pipeline_runner=get_pipeline_runner(),
    )


async def shutdown_container_resources() -> None:
    """关闭共享客户端并清理依赖容器缓存。"""
    if get_fal_provider.cache_info().currsize:
        try:
            await get_fal_provider().aclose()
        except Exception as exc:
            logger.warning(
                "provider close failed",
                extra={
                    "event": "container.shutdown.failed",
                    "external_service": FAL_PROVIDER,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    # 按依赖顺序清理缓存，确保后续请求可重新构建全新实例。
    for provider in (
        get_executor,
        get_pipeline_runner,
        get_job_runner,
        get_resolver,
        get_registry,
        get_fal_provider,
    ):
        provider.cache_clear()

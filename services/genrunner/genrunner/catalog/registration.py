"""内置目录注册入口：显式列出全部定义，不做目录扫描。"""

from __future__ import annotations

import logging

from genrunner.catalog.actions import build_actions
from genrunner.catalog.models import build_models
from genrunner.catalog.skills import build_skills
from genrunner.domain.models import AnyDefinition
from genrunner.domain.registry import Registry

logger = logging.getLogger(__name__)


def builtin_definitions() -> list[AnyDefinition]:
    return [*build_models(), *build_actions(), *build_skills()]


def register_catalog(registry: Registry) -> int:
    """注册全部内置定义，返回注册数量。"""
    definitions = builtin_definitions()
    for definition in definitions:
        registry.register(definition)
    logger.info(
        "builtin catalog registered",
        extra={"event": "catalog.registered", "payload_preview": [item.qualified_name for item in definitions]},
    )
    return len(definitions)

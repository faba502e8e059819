"""API 总路由配置，按业务域注册 definitions 与 runs 子路由。"""

from __future__ import annotations

from fastapi import APIRouter

from genrunner.api.v1.definitions import router as definitions_router
from genrunner.api.v1.runs import router as runs_router
from genrunner.config import get_settings

settings = get_settings()

api_router = APIRouter(prefix=settings.api_prefix)
api_router.include_router(definitions_router, tags=["definitions"])
api_router.include_router(runs_router, tags=["runs"])

"""领域枚举定义：统一定义类型、作业状态与名称匹配方式取值。"""

from __future__ import annotations

from enum import Enum


class DefinitionKind(str, Enum):
    """定义类型枚举，解析顺序即声明顺序。"""
    model = "model"
    action = "action"
    skill = "skill"


class JobStatus(str, Enum):
    """作业生命周期状态枚举。"""
    pending = "pending"
    queued = "queued"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_JOB_STATUSES


TERMINAL_JOB_STATUSES = frozenset({JobStatus.completed, JobStatus.failed, JobStatus.cancelled})


class MatchKind(str, Enum):
    """名称解析命中方式枚举。"""
    exact = "exact"
    alias = "alias"
    namespace = "namespace"
    fuzzy = "fuzzy"

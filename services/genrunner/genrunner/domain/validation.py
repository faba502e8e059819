"""输入校验：基于定义上挂载的 pydantic 模型校验输入并补齐默认值。"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from genrunner.domain.errors import ValidationError
from genrunner.domain.models import AnyDefinition


def _error_path(loc: tuple[Any, ...]) -> str:
    parts: list[str] = []
    for item in loc:
        if isinstance(item, int) and parts:
            parts[-1] = f"{parts[-1]}[{item}]"
        else:
            parts.append(str(item))
    return ".".join(parts)


def validate_inputs(definition: AnyDefinition, inputs: dict[str, Any]) -> dict[str, Any]:
    """校验并返回可直接下发的输入；未声明字段原样保留。"""
    input_model = definition.schema.input
    if input_model is None:
        return dict(inputs)
    try:
        validated = input_model.model_validate(inputs)
    except PydanticValidationError as exc:
        errors = [
            {"path": _error_path(tuple(item["loc"])), "message": f"{_error_path(tuple(item['loc']))}: {item['msg']}"}
            for item in exc.errors()
        ]
        raise ValidationError(definition.name, errors) from exc
    return {**inputs, **validated.model_dump()}

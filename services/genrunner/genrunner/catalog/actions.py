"""内置动作定义：按输入条件路由到具体模型。"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from genrunner.catalog.shared import AspectRatio, ImageSize, VideoDuration
from genrunner.domain.models import ActionDefinition, DefinitionSchema, Route


class TextToImageInput(BaseModel):
    prompt: str = Field(description="What to generate")
    size: ImageSize = Field(default="landscape_4_3", description="Image size/aspect ratio")


class ImageToVideoInput(BaseModel):
    image_url: str = Field(description="Source image URL")
    prompt: str = Field(default="subtle natural motion", description="How the image should move")
    duration: VideoDuration = Field(default=5, description="Video duration in seconds")


class VideoInput(BaseModel):
    prompt: str = Field(description="What to generate")
    image: str | None = Field(default=None, description="Input image, enables image-to-video")
    duration: VideoDuration = Field(default=5, description="Video duration in seconds")
    aspect_ratio: AspectRatio = Field(default="16:9", description="Aspect ratio for text-to-video")


def _flux_inputs(inputs: dict[str, Any]) -> dict[str, Any]:
    return {"prompt": inputs["prompt"], "image_size": inputs["size"]}


def _kling_image_inputs(inputs: dict[str, Any]) -> dict[str, Any]:
    return {"prompt": inputs["prompt"], "image_url": inputs["image_url"], "duration": inputs["duration"]}


def _image_to_video_inputs(inputs: dict[str, Any]) -> dict[str, Any]:
    return {"prompt": inputs["prompt"], "image_url": inputs["image"], "duration": inputs["duration"]}


def _kling_text_inputs(inputs: dict[str, Any]) -> dict[str, Any]:
    return {"prompt": inputs["prompt"], "duration": inputs["duration"], "aspect_ratio": inputs["aspect_ratio"]}


def build_actions() -> list[ActionDefinition]:
    return [
        ActionDefinition(
            name="text-to-image",
            description="Generate an image from a text prompt",
            schema=DefinitionSchema(input=TextToImageInput, input_type="text", output_type="image"),
            routes=[Route(target="flux", transform=_flux_inputs)],
        ),
        ActionDefinition(
            name="image-to-video",
            description="Animate a still image into a short video clip",
            schema=DefinitionSchema(input=ImageToVideoInput, input_type="image", output_type="video"),
            routes=[Route(target="kling", transform=_kling_image_inputs)],
        ),
        ActionDefinition(
            name="video",
            description="Generate video from text or image",
            schema=DefinitionSchema(input=VideoInput, input_type="text,image", output_type="video"),
            routes=[
                # 校验后 image 字段总会存在，缺省为 None。
                Route(
                    target="image-to-video",
                    when={"image": {"$ne": None}},
                    priority=10,
                    transform=_image_to_video_inputs,
                ),
                Route(target="kling", priority=1, transform=_kling_text_inputs),
            ],
        ),
    ]

"""内置技能定义：多步骤组合流程。"""

from __future__ import annotations

from pydantic import BaseModel, Field

from genrunner.catalog.shared import ImageSize, VideoDuration
from genrunner.domain.models import DefinitionSchema, SkillDefinition, Step


class AnimatedImageInput(BaseModel):
    prompt: str = Field(description="Description of the still image")
    motion_prompt: str = Field(default="subtle natural motion", description="How the image should move")
    size: ImageSize = Field(default="landscape_16_9", description="Image size/aspect ratio")
    duration: VideoDuration = Field(default=5, description="Video duration in seconds")


def build_skills() -> list[SkillDefinition]:
    return [
        SkillDefinition(
            name="animated-image",
            description="Generate an image from text, then animate it into a video",
            schema=DefinitionSchema(input=AnimatedImageInput, input_type="text", output_type="video"),
            steps=[
                Step(
                    name="image",
                    run="text-to-image",
                    inputs={"prompt": "$inputs.prompt", "size": "$inputs.size"},
                ),
                Step(
                    name="animate",
                    run="image-to-video",
                    inputs={
                        "image_url": "$image.images.0.url",
                        "prompt": "$inputs.motion_prompt",
                        "duration": "$inputs.duration",
                    },
                ),
            ],
        ),
    ]

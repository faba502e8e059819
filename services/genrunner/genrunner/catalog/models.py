"""内置模型定义：图像、视频与语音转写。"""

from __future__ import annotations

from pydantic import BaseModel, Field

from genrunner.catalog.shared import FAL_PROVIDER, AspectRatio, ImageSize, VideoDuration
from genrunner.domain.models import DefinitionSchema, ModelDefinition


class FluxInput(BaseModel):
    prompt: str = Field(description="Text description of the image")
    image_size: ImageSize = Field(default="landscape_4_3", description="Output image size/aspect")
    num_inference_steps: int = Field(default=28, ge=1, description="Number of inference steps")
    guidance_scale: float = Field(default=3.5, description="Guidance scale for generation")


class KlingInput(BaseModel):
    prompt: str = Field(description="Text description of the video")
    image_url: str | None = Field(default=None, description="Input image for image-to-video")
    duration: VideoDuration = Field(default=5, description="Video duration in seconds")
    aspect_ratio: AspectRatio = Field(default="16:9", description="Output aspect ratio")


class VideoFile(BaseModel):
    url: str


class KlingOutput(BaseModel):
    video: VideoFile


class WhisperInput(BaseModel):
    file: str = Field(description="Audio file URL to transcribe")
    language: str | None = Field(default=None, description="Language code, e.g. 'en'")
    prompt: str | None = Field(default=None, description="Optional prompt to guide transcription")
    temperature: float = Field(default=0, ge=0, le=1, description="Sampling temperature")


def build_models() -> list[ModelDefinition]:
    return [
        ModelDefinition(
            name="flux",
            description="Flux Pro image generation model for high-quality images from text",
            schema=DefinitionSchema(input=FluxInput, input_type="text", output_type="image"),
            providers=[FAL_PROVIDER],
            default_provider=FAL_PROVIDER,
            provider_models={FAL_PROVIDER: "fal-ai/flux-pro/v1.1"},
        ),
        ModelDefinition(
            name="kling",
            description="Kling video generation model for high-quality video from text or image",
            schema=DefinitionSchema(input=KlingInput, output=KlingOutput, input_type="text,image", output_type="video"),
            providers=[FAL_PROVIDER],
            default_provider=FAL_PROVIDER,
            provider_models={FAL_PROVIDER: "fal-ai/kling-video/v2.5-turbo/pro"},
        ),
        ModelDefinition(
            name="whisper",
            description="OpenAI Whisper model for speech-to-text transcription",
            schema=DefinitionSchema(input=WhisperInput, input_type="audio", output_type="text"),
            providers=[FAL_PROVIDER],
            default_provider=FAL_PROVIDER,
            provider_models={FAL_PROVIDER: "fal-ai/whisper"},
        ),
    ]

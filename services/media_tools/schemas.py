from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Type
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from shared.generation import GenerationRequest, Image2Image, Text2Image, Text2Video


def _check_url(value: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"invalid URL: {value}")
    return value


class PurchasePlanInput(BaseModel):
    planDid: str = Field(description="DID of the plan to purchase")


class Text2ImageInput(BaseModel):
    prompt: str = Field(min_length=1, description="Text prompt for image generation")

    def to_request(self) -> GenerationRequest:
        return Text2Image(self.prompt)


class Image2ImageInput(BaseModel):
    inputImageUrl: str = Field(description="URL of the input image")
    prompt: str = Field(min_length=1, description="Text prompt for transformation")

    @field_validator("inputImageUrl")
    @classmethod
    def _url(cls, value: str) -> str:
        return _check_url(value)

    def to_request(self) -> GenerationRequest:
        return Image2Image(self.inputImageUrl, self.prompt)


class Text2VideoInput(BaseModel):
    prompt: str = Field(min_length=1, description="Text prompt for video generation")
    imageUrls: Optional[list[str]] = Field(default=None, description="Optional array of reference image URLs")
    duration: Optional[float] = Field(default=None, gt=0, description="Optional duration in seconds")

    @field_validator("imageUrls")
    @classmethod
    def _urls(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is not None:
            for url in value:
                _check_url(url)
        return value

    def to_request(self) -> GenerationRequest:
        urls = tuple(self.imageUrls) if self.imageUrls is not None else None
        return Text2Video(self.prompt, urls, self.duration)


@dataclass(frozen=True)
class ToolDef:
    name: str
    description: str
    input_model: Type[BaseModel]

    def spec(self) -> dict:
        return {"name": self.name, "description": self.description, "inputSchema": self.input_model.model_json_schema()}


TOOLS: list[ToolDef] = [
    ToolDef("purchase_plan", "Purchase a subscription plan for media generation", PurchasePlanInput),
    ToolDef("text2image", "Generate an image from a text prompt", Text2ImageInput),
    ToolDef("image2image", "Transform an image based on a text prompt", Image2ImageInput),
    ToolDef("text2video", "Generate a video from a text prompt", Text2VideoInput),
]
TOOLS_BY_NAME = {t.name: t for t in TOOLS}

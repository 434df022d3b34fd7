from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from shared import logging_utils
from shared.generation import GenerationRequest, Image2Image, Text2Image, Text2Video
from shared.materialize import ContentMaterializer, MaterializedContent
from shared.payments import AccessBroker

_LOG = logging_utils.get_logger("orchestrator")

PURCHASE_PROMPT = "Insufficient credits. Please purchase a plan using the purchase_plan tool with the following parameters:"


@dataclass(frozen=True)
class ToolProfile:
    mime_type: str
    error_prefix: str
    missing_uri: str
    label: str


PROFILES: dict[str, ToolProfile] = {
    Text2Image.kind: ToolProfile("image/jpeg", "Error generating image", "No image URL returned", "Generated image"),
    Image2Image.kind: ToolProfile("image/jpeg", "Error transforming image", "No image URL returned", "Transformed image"),
    Text2Video.kind: ToolProfile("video/mp4", "Error generating video", "No video URL returned", "Generated video"),
}


@dataclass
class ToolResponse:
    content: list[dict[str, Any]]
    is_error: bool = False
    metadata: dict[str, Any] | None = None

    @classmethod
    def text(cls, text: str, *, is_error: bool = False) -> "ToolResponse":
        return cls([{"type": "text", "text": text}], is_error=is_error)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"content": self.content, "isError": self.is_error}
        if self.metadata is not None:
            out["metadata"] = self.metadata
        return out


def content_item(content: MaterializedContent, label: str) -> dict[str, Any]:
    if content.inline is None:
        return {"type": "resource", "resource": {"uri": content.uri, "text": label, "mimeType": content.mime_type}}
    if content.mime_type.startswith("image/"):
        return {"type": "image", "data": content.inline, "mimeType": content.mime_type}
    return {"type": "resource", "resource": {"uri": content.uri, "blob": content.inline, "mimeType": content.mime_type}}


class ToolOrchestrator:
    """Runs the payment-gated generation flow shared by every media tool.

    check balance -> (purchase prompt) -> access grant -> generate -> materialize.
    Access-grant and download failures propagate; everything else is
    folded into the returned ``ToolResponse``.
    """

    def __init__(self, broker: AccessBroker, materializer: ContentMaterializer, *, plan_did: str, agent_did: str):
        self.broker = broker
        self.materializer = materializer
        self.plan_did = plan_did
        self.agent_did = agent_did

    def purchase_prompt(self) -> ToolResponse:
        return ToolResponse(
            [
                {"type": "text", "text": PURCHASE_PROMPT},
                {"type": "text", "text": json.dumps({"planDid": self.plan_did}, indent=2)},
            ],
            metadata={"needsPurchase": True, "planDid": self.plan_did},
        )

    async def purchase_plan(self, plan_did: str) -> ToolResponse:
        outcome = await self.broker.order_plan(plan_did)
        if not outcome.success:
            return ToolResponse.text(f"Error purchasing plan: {outcome.message or 'Unknown error'}", is_error=True)
        return ToolResponse.text(outcome.message or "Plan purchased successfully. You can now generate media.")

    async def run(self, request: GenerationRequest) -> ToolResponse:
        profile = PROFILES[request.kind]
        if not await self.broker.check_balance(self.plan_did, self.agent_did):
            logging_utils.info(_LOG, "purchase required", tool=request.kind, plan=self.plan_did)
            return self.purchase_prompt()

        client = await self.broker.get_generation_client(self.agent_did)
        result = await client.generate(request)
        if not result.success or not result.primary_uri:
            return ToolResponse.text(f"{profile.error_prefix}: {result.message or profile.missing_uri}", is_error=True)

        content = await self.materializer.materialize(result.primary_uri, profile.mime_type)
        logging_utils.info(_LOG, "tool completed", tool=request.kind, inline=content.is_inline)
        return ToolResponse([content_item(content, profile.label)])

    async def text2image(self, prompt: str) -> ToolResponse:
        return await self.run(Text2Image(prompt))

    async def image2image(self, input_image_url: str, prompt: str) -> ToolResponse:
        return await self.run(Image2Image(input_image_url, prompt))

    async def text2video(self, prompt: str, image_urls: list[str] | None = None, duration: float | None = None) -> ToolResponse:
        urls = tuple(image_urls) if image_urls is not None else None
        return await self.run(Text2Video(prompt, urls, duration))

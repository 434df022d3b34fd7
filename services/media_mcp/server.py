from __future__ import annotations

from typing import Annotated, Any, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import ToolResult
from mcp import types
from pydantic import Field

from services.media_tools.orchestrator import ToolResponse
from services.media_tools.schemas import TOOLS_BY_NAME
from services.media_tools.service import MediaToolsService
from shared.errors import MediaGateError
from shared.protocol import VERSION

SERVER_NAME = "video-generation"
INSTRUCTIONS = (
    "Image and video generation tools. Generation is paid with Nevermined credits; "
    "when a tool reports insufficient credits, call purchase_plan with the planDid it returns."
)


def to_mcp_content(response: ToolResponse) -> list[Any]:
    blocks: list[Any] = []
    for item in response.content:
        kind = item.get("type")
        if kind == "text":
            blocks.append(types.TextContent(type="text", text=item["text"]))
        elif kind == "image":
            blocks.append(types.ImageContent(type="image", data=item["data"], mime_type=item["mimeType"]))
        elif kind == "resource":
            res = item["resource"]
            if "blob" in res:
                contents = types.BlobResourceContents(uri=res["uri"], blob=res["blob"], mime_type=res["mimeType"])
            else:
                contents = types.TextResourceContents(uri=res["uri"], text=res.get("text", ""), mime_type=res["mimeType"])
            blocks.append(types.EmbeddedResource(type="resource", resource=contents))
        else:
            raise ValueError(f"unsupported content type: {kind}")
    return blocks


async def call_tool(service: MediaToolsService, name: str, arguments: dict) -> ToolResult:
    try:
        response = await service.invoke(name, arguments)
    except MediaGateError as exc:
        raise ToolError(str(exc)) from exc
    if response.is_error:
        raise ToolError(" ".join(i.get("text", "") for i in response.content if i.get("type") == "text"))
    # purchase prompts carry needsPurchase/planDid for the client
    return ToolResult(content=to_mcp_content(response), structured_content=response.metadata, meta=response.metadata)


def build_server(service: MediaToolsService) -> FastMCP:
    mcp = FastMCP(SERVER_NAME, instructions=INSTRUCTIONS, version=VERSION)

    @mcp.tool(name="purchase_plan", description=TOOLS_BY_NAME["purchase_plan"].description)
    async def purchase_plan(planDid: Annotated[str, Field(description="DID of the plan to purchase")]):  # noqa: N803
        return await call_tool(service, "purchase_plan", {"planDid": planDid})

    @mcp.tool(name="text2image", description=TOOLS_BY_NAME["text2image"].description)
    async def text2image(prompt: Annotated[str, Field(min_length=1, description="Text prompt for image generation")]):
        return await call_tool(service, "text2image", {"prompt": prompt})

    @mcp.tool(name="image2image", description=TOOLS_BY_NAME["image2image"].description)
    async def image2image(
        inputImageUrl: Annotated[str, Field(description="URL of the input image")],  # noqa: N803
        prompt: Annotated[str, Field(min_length=1, description="Text prompt for transformation")],
    ):
        return await call_tool(service, "image2image", {"inputImageUrl": inputImageUrl, "prompt": prompt})

    @mcp.tool(name="text2video", description=TOOLS_BY_NAME["text2video"].description)
    async def text2video(
        prompt: Annotated[str, Field(min_length=1, description="Text prompt for video generation")],
        imageUrls: Annotated[Optional[list[str]], Field(description="Optional array of reference image URLs")] = None,  # noqa: N803
        duration: Annotated[Optional[float], Field(gt=0, description="Optional duration in seconds")] = None,
    ):
        return await call_tool(service, "text2video", {"prompt": prompt, "imageUrls": imageUrls, "duration": duration})

    return mcp
